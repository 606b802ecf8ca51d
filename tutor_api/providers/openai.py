import time

from openai import APIError, AsyncOpenAI
from openai import RateLimitError as OpenAIRateLimitError

from tutor_api.config import ProviderSpec, settings
from tutor_api.exceptions import ProviderError, RateLimitError
from tutor_api.models import ModelReply
from tutor_api.providers.base import ProviderClient
from tutor_api.routing.usage_meter import estimate_tokens


class OpenAIProvider(ProviderClient):
    """
    OpenAI-compatible chat completions client.

    Also used for hosted open-weight models exposed through an OpenAI-compatible
    endpoint (``base_url`` in providers.yaml; placeholders are filled from settings).
    """

    def __init__(self, spec: ProviderSpec, api_key: str):
        super().__init__(spec)
        self.client = AsyncOpenAI(api_key=api_key, base_url=spec.resolve_base_url())

    async def chat(self, prompt: str, timeout_ms: int) -> ModelReply:
        start_time = time.time()

        try:
            response = await self.client.chat.completions.create(
                model=self.spec.model,
                messages=[
                    {"role": "system", "content": settings.system_prompt},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=settings.max_output_tokens,
                temperature=self.spec.temperature,
                timeout=timeout_ms / 1000,
            )
        except OpenAIRateLimitError as e:
            raise RateLimitError(f"OpenAI rate limit: {str(e)}", provider_name=self.name)
        except APIError as e:
            raise ProviderError(f"OpenAI API error: {str(e)}", provider_name=self.name)

        actual_latency_ms = int((time.time() - start_time) * 1000)
        content = response.choices[0].message.content or ""

        return ModelReply(
            provider_used=self.name,
            model=self.spec.model,
            content=content,
            latency_ms=actual_latency_ms,
            input_tokens=estimate_tokens(prompt),
            output_tokens=estimate_tokens(content),
        )
