from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    openai_api_key: SecretStr
    openai_base_url: str = "https://api.openai.com/v1"
    embedding_model: str = "text-embedding-ada-002"
    embedding_dimension: int = 1536
    chat_model: str = "gpt-4o"
    chat_temperature: float = 0.7
    chat_max_tokens: int = 1000
    http_timeout: float = 60.0

    # Vector index
    vector_backend: Literal["pinecone", "memory"] = "pinecone"
    pinecone_api_key: SecretStr = SecretStr("")
    pinecone_control_url: str = "https://api.pinecone.io"
    pinecone_api_version: str = "2024-07"
    pinecone_index_name: str = "chatbot-knowledge-base"
    pinecone_cloud: str = "aws"
    pinecone_region: str = "us-east-1"
    index_ready_timeout: float = 120.0
    index_ready_poll_interval: float = 2.0

    # RAG pipeline
    chunk_size: int = 1000
    chunk_overlap: int = 200
    embedding_concurrency: int = 8
    retrieval_top_k: int = 5
    retrieval_score_threshold: float = 0.7
    history_limit: int = 10
    preview_length: int = 100

    # Uploads
    upload_dir: str = "uploads"
    max_upload_bytes: int = 10 * 1024 * 1024

    # Storage
    storage_backend: Literal["memory", "sql"] = "memory"
    database_url: str = "sqlite+aiosqlite:///./doc_chat.db"

    # Bearer tokens issued at login
    jwt_secret: SecretStr
    jwt_algo: str = "HS256"
    jwt_ttl_seconds: int = 60 * 60 * 24

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @model_validator(mode="after")
    def _require_pinecone_key(self) -> "Settings":
        if self.vector_backend == "pinecone" and not self.pinecone_api_key.get_secret_value():
            raise ValueError("PINECONE_API_KEY is required when VECTOR_BACKEND is 'pinecone'")
        return self

settings = Settings()
