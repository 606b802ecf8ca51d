from abc import ABC, abstractmethod

from tutor_api.config import ProviderSpec
from tutor_api.models import ModelReply


class ProviderClient(ABC):
    """
    Abstract base class for all text-generation providers.
    """

    def __init__(self, spec: ProviderSpec):
        self.spec = spec
        self.name = spec.name

    @abstractmethod
    async def chat(self, prompt: str, timeout_ms: int) -> ModelReply:
        pass
