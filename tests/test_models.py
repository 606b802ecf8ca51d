from pathlib import Path

import pytest
from pydantic import ValidationError

from tutor_api.config import ProviderRegistry, Settings
from tutor_api.models import CacheEntry, ChatRequest, Conversation, KeywordResponse, UsageCheckRequest


def test_chat_request_requires_message():
    with pytest.raises(ValidationError):
        ChatRequest(message="")
    assert ChatRequest(message="hi", user_id="u1").user_id == "u1"


def test_cache_entry_hit_count_positive():
    with pytest.raises(ValidationError):
        CacheEntry(key="k", original_query="q", normalized_query="q", response="r", created_at=0.0, hit_count=0)


def test_usage_check_cost_positive():
    with pytest.raises(ValidationError):
        UsageCheckRequest(ip_address="10.0.0.1", cost_estimate=0)


def test_conversation_round_trips_camel_case():
    conversation = Conversation.model_validate(
        {"id": "1", "timestamp": "t", "date": "2024-03-15", "userMessage": "q", "aiResponse": "a", "fingerprintId": "fp"}
    )
    assert conversation.user_message == "q"
    assert conversation.model_dump(by_alias=True)["fingerprintId"] == "fp"


def test_keyword_response_alias():
    assert KeywordResponse(use_ai=True).model_dump(by_alias=True, exclude_none=True) == {"useAI": True}


def test_settings_defaults():
    settings = Settings(_env_file=None)
    assert str(settings.daily_global_limit) == "10.00"
    assert settings.identity_scheme == "ip"
    assert settings.plan_limits["premium"] is None


def test_settings_reject_bad_ratio():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, cache_similarity_threshold=1.5)


def test_settings_reject_bad_timeout():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, collaborator_timeout_s=0)


def test_provider_registry():
    providers = ProviderRegistry.providers_dict()
    assert providers["gpt-oss-120b"].tier == "cheap"
    assert providers["gemini"].tier == "premium"

    with pytest.raises(ValueError):
        ProviderRegistry.get("no-such-provider")


def test_env_example_loads_and_fills_account_into_cheap_url(tmp_path):
    example = Path(__file__).parent.parent / ".env.example"
    env_file = tmp_path / ".env"
    env_file.write_text(example.read_text().replace("CF_ACCOUNT_ID=\n", "CF_ACCOUNT_ID=abc123\n"))

    loaded = Settings(_env_file=str(env_file))

    assert loaded.cf_account_id == "abc123"
    url = ProviderRegistry.get("gpt-oss-120b").resolve_base_url(loaded)
    assert url == "https://api.cloudflare.com/client/v4/accounts/abc123/ai/v1"


def test_unset_placeholder_is_left_in_place():
    spec = ProviderRegistry.get("gpt-oss-120b")
    assert "${CF_ACCOUNT_ID}" in spec.resolve_base_url(Settings(cf_account_id=None))
    assert ProviderRegistry.get("gemini").resolve_base_url() is None
