"""Distance normalization for backend query results."""

import math
from typing import Any


def distance_to_similarity(distance: Any = None) -> float:
    """Convert a backend distance into a similarity score in [0, 1].

    Distances are assumed to already be bounded to [0, 1]; values outside
    that range are clamped. Missing or non-numeric input scores ``0.0``.
    """
    if distance is None or isinstance(distance, bool):
        return 0.0
    if not isinstance(distance, int | float) or math.isnan(distance):
        return 0.0
    if distance >= 1.0:
        return 1.0
    if distance <= 0:
        return 0.0
    return 1 - distance
