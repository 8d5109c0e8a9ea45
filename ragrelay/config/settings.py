from pathlib import Path

from pydantic_settings import BaseSettings

from ..infrastructure.http_support import chat_to_embedding_endpoint


class Settings(BaseSettings):

    work_dir: str = "."
    # Relative paths resolve against work_dir; empty means "<work_dir>/src"
    corpus_dir: str = ""
    vector_store_file: str = ".vector_store.json"
    corpus_extensions: list[str] = [".md", ".markdown", ".txt"]

    chat_endpoint: str = ""
    chat_api_key: str = ""
    chat_model: str = ""
    chat_timeout: float = 60.0
    models_timeout: float = 10.0

    # Empty endpoint is derived from chat_endpoint, empty key falls back to chat_api_key
    embedding_endpoint: str = ""
    embedding_api_key: str = ""
    embedding_model: str = "text-embedding-3-small"
    embedding_timeout: float = 30.0
    embedding_batch_size: int = 32

    index_batch_size: int = 20
    index_version: str = "1.0"
    chunk_size: int = 1000
    chunk_overlap: int = 200

    rag_top_k: int = 3
    max_context_chars: int = 100_000
    max_system_prompt_chars: int = 10_000
    default_system_prompt: str = "You are a helpful AI assistant for documentation editing."

    api_host: str = "127.0.0.1"
    api_port: int = 8080
    cors_origins: list[str] = ["*"]

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def corpus_path(self) -> Path:
        base = Path(self.work_dir)
        return base / (self.corpus_dir or "src")

    @property
    def vector_store_path(self) -> Path:
        return Path(self.work_dir) / self.vector_store_file

    @property
    def resolved_embedding_endpoint(self) -> str:
        if self.embedding_endpoint:
            return self.embedding_endpoint
        if self.chat_endpoint:
            return chat_to_embedding_endpoint(self.chat_endpoint)
        return ""

    @property
    def resolved_embedding_api_key(self) -> str:
        return self.embedding_api_key or self.chat_api_key


settings = Settings()
