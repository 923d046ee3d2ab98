"""
Application Settings.

Centraliza toda configuração via .env / variáveis de ambiente.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configurações carregadas de variáveis de ambiente."""

    # --- App ---
    env: str = "development"
    debug: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # --- Extração de regras ---
    confidence_threshold: float = 70.0
    max_retries: int = 3
    retry_backoff_seconds: float = 0.5
    extraction_timeout_seconds: int = 60
    auto_extract_rules: bool = False

    # --- Apuração ---
    match_policy: str = "all"            # "all" | "first"
    run_timeout_seconds: float = 120.0

    # --- Lote / cache ---
    batch_concurrency: int = 4
    cache_ttl_seconds: int = 3600
    cache_max_entries: int = 10000

    # --- Precificação ---
    margin_minimum: float = 10.0
    margin_ideal: float = 25.0
    margin_maximum: float = 60.0

    # --- Dados ---
    database_url: str = "sqlite:///apuracao.db"
    items_dir: str = "data/items"

    # --- LLM (Gemini) ---
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    llm_enabled: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Singleton de settings."""
    return Settings()
