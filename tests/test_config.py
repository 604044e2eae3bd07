from __future__ import annotations

from siteaudit.config import Settings


def test_missing_provider_keys_lists_required_credentials():
    config = Settings(
        _env_file=None,
        openai_api_key="",
        firecrawl_api_key=" ",
        supabase_url="",
        supabase_service_role_key="",
        job_store_backend="supabase",
        chunk_store_backend="supabase",
    )
    assert config.missing_provider_keys() == [
        "OPENAI_API_KEY",
        "FIRECRAWL_API_KEY",
        "SUPABASE_URL",
        "SUPABASE_SERVICE_ROLE_KEY",
    ]


def test_local_backends_do_not_need_supabase():
    config = Settings(
        _env_file=None,
        openai_api_key="sk-test",
        firecrawl_api_key="fc-test",
        supabase_url="",
        supabase_service_role_key="",
        job_store_backend="memory",
        chunk_store_backend="chromadb",
    )
    assert config.missing_provider_keys() == []


def test_cors_origin_list_splits_and_strips():
    config = Settings(_env_file=None, cors_origins="http://a.example, http://b.example")
    assert config.cors_origin_list == ["http://a.example", "http://b.example"]
