import os
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_api_key: str = os.getenv("APP_API_KEY", "")
    backend_url: str = os.getenv("CIVICGPT_BACKEND_URL", "http://localhost:8000")

    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    perplexity_api_key: str = os.getenv("PERPLEXITY_API_KEY", "")
    google_api_key: str = os.getenv("GOOGLE_API_KEY", "")

    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1/"
    perplexity_base_url: str = "https://api.perplexity.ai"

    default_model: str = os.getenv("DEFAULT_MODEL", "gpt-4o-mini")
    openai_models: list[str] = ["gpt-4o-mini", "gpt-4o", "gpt-4.1", "gpt-4.1-mini"]
    anthropic_models: list[str] = ["claude-haiku-4-5-20251001", "claude-sonnet-4-5"]
    perplexity_models: list[str] = ["sonar", "sonar-pro", "sonar-reasoning"]
    gemini_models: list[str] = ["gemini-2.0-flash", "gemini-2.5-flash"]
    non_streaming_providers: list[str] = ["perplexity"]

    temperature: float = 0.7
    max_tokens: int = 2000

    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_service_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    nys_api_key: str = os.getenv("NYS_LEGISLATION_API_KEY", "")
    nys_base_url: str = "https://legislation.nysenate.gov/api/3"

    embedding_model: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    embedding_dimensions: int = 256

    vector_backend: str = os.getenv("VECTOR_BACKEND", "supabase")
    chroma_persist_dir: str = os.getenv("CHROMA_PERSIST_DIR", "./chroma")
    chroma_collection: str = os.getenv("CHROMA_COLLECTION", "bill_chunks")

    tier_limit: int = 10
    semantic_threshold: float = 0.55
    semantic_match_count: int = 15
    semantic_per_bill_cap: int = 2
    history_bill_lookback: int = 3
    history_gate_lookback: int = 4
    history_message_limit: int = 10

    budget_aprops_limit: int = 25
    budget_capital_limit: int = 20
    budget_spending_limit: int = 25
    contracts_department_limit: int = 15
    contracts_vendor_limit: int = 10
    contracts_total_limit: int = 20

    cache_ttl: int = 600

    max_retries: int = 3
    initial_backoff: float = 1.0

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
