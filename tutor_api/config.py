from decimal import Decimal
from pathlib import Path
from string import Template
from typing import Literal, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env: str = "local"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: str = "logs"
    mock: bool = True
    mock_failure_rate: float = 0.0

    # Identity scheme used for per-identity quotas: anonymous IP or signed-in user
    identity_scheme: Literal["ip", "user"] = "ip"
    login_url: str = "/login"

    # Provider credentials and tier selection
    workers_ai_api_key: SecretStr = SecretStr("")
    cf_account_id: Optional[str] = None
    openai_api_key: SecretStr = SecretStr("")
    google_api_key: SecretStr = SecretStr("")
    cheap_provider: str = "gpt-oss-120b"
    premium_provider: Optional[str] = "gemini"
    providers_file: str = str(Path(__file__).parent.parent / "providers.yaml")
    system_prompt: str = (
        "You are a helpful AI tutor for Singapore O-Level students. Provide clear, concise "
        "explanations for mathematics and music questions.\n\n"
        "Focus on:\n"
        "- Step-by-step solutions for math problems\n"
        "- Basic music theory concepts\n"
        "- Clear explanations suitable for O-Level students\n"
        "- Use simple LaTeX for math: $x^2 + 2x + 1$\n\n"
        "Keep responses under 300 words and direct to the point."
    )
    max_output_tokens: int = 300
    model_timeout_ms: int = 30000

    # Budget Configuration
    daily_global_limit: Decimal = Field(default=Decimal("10.00"), gt=0, description="Platform-wide daily spend in USD")
    daily_identity_budget: Decimal = Field(default=Decimal("0.10"), gt=0, description="Per-IP daily spend in USD")
    question_cost_estimate: Decimal = Field(default=Decimal("0.025"), gt=0, description="Estimated cost per question")
    plan_limits: dict[str, Optional[int]] = {"free": 10, "student": 100, "premium": None}
    default_plan: str = "free"
    global_warning_ratio: float = 0.8

    # Request shaping and cache policy
    max_input_chars: int = 2000
    truncation_marker: str = "... [message truncated for length]"
    cache_ttl_s: int = 24 * 60 * 60
    cache_similarity_threshold: float = 0.8

    # Cheap model quality gate
    min_response_chars: int = 30
    refusal_phrases: list[str] = ["I cannot", "I don't know", "sorry", "Sorry"]

    # Usage meter ceilings
    usage_daily_cost_limit: float = 5.00
    usage_monthly_cost_limit: float = 50.00
    usage_warning_ratio: float = 0.8

    conversation_daily_limit: int = 25

    # Storage collaborators
    storage_backend: Literal["memory", "redis", "sql"] = "memory"
    redis_url: Optional[str] = None
    database_url: Optional[str] = None
    collaborator_timeout_s: float = 2.0

    # Browser auth client configuration served by /config
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None

    @field_validator("mock_failure_rate", "global_warning_ratio", "usage_warning_ratio", "cache_similarity_threshold")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("ratio settings must be between 0.0 and 1.0")
        return v

    @field_validator("max_input_chars", "min_response_chars", "cache_ttl_s", "conversation_daily_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("collaborator_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("collaborator_timeout_s must be positive")
        return v

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()


class ProviderSpec(BaseModel):
    """
    Specification for a text-generation provider with validated configuration.

    Prices are USD per million tokens and feed both the usage report and the
    per-call cost estimate.
    """

    name: str
    tier: Literal["cheap", "premium"]
    model: str
    input_cost_per_m_tokens: float = Field(ge=0, description="USD per million input tokens")
    output_cost_per_m_tokens: float = Field(ge=0, description="USD per million output tokens")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    api_key_var: Optional[str] = None
    base_url: Optional[str] = None
    provider_class: Optional[str] = None

    def resolve_base_url(self, source: Optional[Settings] = None) -> Optional[str]:
        """
        Fill ${VAR} placeholders in ``base_url`` from settings fields.

        ``${CF_ACCOUNT_ID}`` reads ``settings.cf_account_id``, so values kept in
        .env resolve the same way as exported environment variables.
        """
        if not self.base_url:
            return None
        source = source or settings
        values = {name.upper(): value for name, value in source.model_dump().items() if isinstance(value, str)}
        return Template(self.base_url).safe_substitute(values)


class ProviderRegistry:
    """
    Registry for available model providers and their specifications.
    This acts as the source of truth for provider capabilities and pricing.
    """

    @classmethod
    def providers_dict(cls) -> dict[str, ProviderSpec]:
        import yaml

        try:
            with open(settings.providers_file, "r") as f:
                data = yaml.safe_load(f)

            return {key: ProviderSpec(name=key, **value) for key, value in data.items()}
        except FileNotFoundError:
            raise RuntimeError(f"{settings.providers_file} not found")
        except Exception as e:
            raise RuntimeError(f"Failed to load providers file: {e}")

    @classmethod
    def providers_list(cls) -> list[ProviderSpec]:
        return list(cls.providers_dict().values())

    @classmethod
    def get(cls, name: str) -> ProviderSpec:
        providers = cls.providers_dict()
        if name not in providers:
            raise ValueError(f"Unknown provider: {name}")
        return providers[name]
