from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenAI-compatible completion service
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    default_model: str = "gpt-4o-mini"
    compiler_model: str = "gpt-4o-mini"
    keyword_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-large"
    embedding_dimensions: int = 1536
    llm_timeout_seconds: float = 60.0
    llm_retry_delay_seconds: float = 2.0
    llm_retries: int = 2

    # Shared token-bucket rate limiter
    rate_limit_tokens_per_minute: int = 400_000
    rate_limit_threshold: float = 0.8
    rate_limit_min_interval_ms: int = 200
    rate_limit_estimated_tokens: int = 15_000

    # Firecrawl
    firecrawl_api_key: str = ""
    firecrawl_base_url: str = "https://api.firecrawl.dev"
    crawl_page_limit: int = 50
    crawl_time_budget_seconds: float = 45.0
    crawl_poll_interval_seconds: float = 4.0
    legal_fetch_batch_size: int = 5
    legal_fetch_timeout_ms: int = 10_000
    page_char_limit_legal: int = 30_000
    page_char_limit_contact: int = 25_000
    page_char_limit_general: int = 10_000

    # Knowledge base
    chunk_store_backend: str = "supabase"  # supabase | chromadb | memory
    chroma_persist_dir: str = ".cache/chroma"
    chunk_max_chars: int = 1000
    retrieval_match_threshold: float = 0.5
    retrieval_match_count: int = 8

    # Analysis + compilation
    base_context_char_limit: int = 120_000
    agent_temperature: float = 0.5
    agent_max_tokens: int = 4000
    agent_result_char_limit: int = 2000
    compiler_temperature: float = 0.1
    compiler_max_tokens: int = 16_000
    finding_confidence_threshold: int = 95
    progress_interval_seconds: float = 1.5

    # Jobs
    job_store_backend: str = "supabase"  # supabase | memory
    max_concurrent_audits: int = 5
    keyword_search_limit: int = 10

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_to_file: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    def missing_provider_keys(self) -> list[str]:
        """Names of credentials an audit cannot start without."""
        required = {
            "OPENAI_API_KEY": self.openai_api_key,
            "FIRECRAWL_API_KEY": self.firecrawl_api_key,
        }
        if self.job_store_backend == "supabase" or self.chunk_store_backend == "supabase":
            required["SUPABASE_URL"] = self.supabase_url
            required["SUPABASE_SERVICE_ROLE_KEY"] = self.supabase_service_role_key
        return [name for name, value in required.items() if not str(value).strip()]


settings = Settings()
