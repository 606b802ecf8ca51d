import time

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from tutor_api.config import ProviderSpec, settings
from tutor_api.exceptions import ProviderError, RateLimitError
from tutor_api.models import ModelReply
from tutor_api.providers.base import ProviderClient
from tutor_api.routing.usage_meter import estimate_tokens


class GoogleProvider(ProviderClient):
    """
    Google implementation of the ProviderClient.
    Handles communication with the Gemini API.
    """

    def __init__(self, spec: ProviderSpec, api_key: str):
        super().__init__(spec)
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(spec.model, system_instruction=settings.system_prompt)
        self.generation_config = genai.GenerationConfig(
            max_output_tokens=settings.max_output_tokens,
            temperature=spec.temperature,
        )

    async def chat(self, prompt: str, timeout_ms: int) -> ModelReply:
        start_time = time.time()

        try:
            response = await self.model.generate_content_async(
                prompt,
                generation_config=self.generation_config,
                request_options={"timeout": timeout_ms / 1000},
            )
            content = response.text
        except google_exceptions.ResourceExhausted as e:
            raise RateLimitError(f"Google rate limit/quota exceeded: {str(e)}", provider_name=self.name)
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            # ValueError: response.text on a blocked or empty candidate
            raise ProviderError(f"Google API error: {str(e)}", provider_name=self.name)

        actual_latency_ms = int((time.time() - start_time) * 1000)

        return ModelReply(
            provider_used=self.name,
            model=self.spec.model,
            content=content,
            latency_ms=actual_latency_ms,
            input_tokens=estimate_tokens(prompt),
            output_tokens=estimate_tokens(content),
        )
