import asyncio
import importlib
import random
import time
from typing import Dict, Optional, Type

from tutor_api.config import ProviderRegistry, ProviderSpec, settings
from tutor_api.exceptions import ProviderError
from tutor_api.models import ModelReply
from tutor_api.providers.base import ProviderClient
from tutor_api.routing.usage_meter import estimate_tokens


class MockProvider(ProviderClient):
    """Offline stand-in used when ``settings.mock`` is on."""

    def __init__(self, spec: ProviderSpec, latency_ms: int = 5):
        super().__init__(spec)
        self.latency_ms = latency_ms

    async def chat(self, prompt: str, timeout_ms: int) -> ModelReply:
        start_time = time.time()

        await asyncio.sleep(self.latency_ms / 1000)

        if random.random() < settings.mock_failure_rate:
            raise ProviderError(f"Random failure from {self.name}", provider_name=self.name)

        content = f"Mock tutor answer from {self.name}: {prompt[:50]}"
        actual_latency_ms = int((time.time() - start_time) * 1000)

        return ModelReply(
            provider_used=self.name,
            model=self.spec.model,
            content=content,
            latency_ms=actual_latency_ms,
            input_tokens=estimate_tokens(prompt),
            output_tokens=estimate_tokens(content),
        )


_provider_cache: Dict[str, ProviderClient] = {}


def import_class(class_path: str) -> Type[ProviderClient]:
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def get_provider(name: str) -> ProviderClient:
    """
    Factory function to get a provider instance by name.
    Manages caching and instantiation of provider clients.
    """
    if name not in _provider_cache:
        spec = ProviderRegistry.get(name)

        if settings.mock:
            _provider_cache[name] = MockProvider(spec)
            return _provider_cache[name]

        if not spec.provider_class:
            raise ValueError(f"Provider class not defined for {name}")

        try:
            provider_class = import_class(spec.provider_class)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Could not import provider class {spec.provider_class}: {e}")

        # Dynamic API key lookup
        api_key = None
        if spec.api_key_var:
            api_key_val = getattr(settings, spec.api_key_var, None)
            if api_key_val and hasattr(api_key_val, "get_secret_value"):
                api_key = api_key_val.get_secret_value()
            else:
                api_key = api_key_val

        if not api_key:
            raise ValueError(f"{spec.api_key_var or 'API key'} not found for provider {name}")

        _provider_cache[name] = provider_class(spec, api_key)

    return _provider_cache[name]


def get_cheap_provider() -> ProviderClient:
    return get_provider(settings.cheap_provider)


def get_premium_provider() -> Optional[ProviderClient]:
    if not settings.premium_provider:
        return None
    return get_provider(settings.premium_provider)
