from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables or .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Storage
    vector_db: str = "qdrant"
    storage_dir: Path = Path("storage")
    metadata_db_path: Path = Path("metadata.sqlite3")

    # Qdrant
    qdrant_url: str | None = None
    qdrant_host: str = "localhost"
    qdrant_port: int = 6333
    qdrant_path: str | None = None
    qdrant_api_key: str | None = None
    qdrant_distance: str = "Cosine"
    qdrant_upsert_batch_size: int = Field(default=500, ge=1)

    # OpenAI
    openai_api_key: str | None = None
    openai_embedding_model: str = "text-embedding-3-small"
    embedding_max_chunk_length: int = Field(default=8191, ge=1)

    # Logging
    log_level: str = "INFO"
