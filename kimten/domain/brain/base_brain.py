from abc import ABC, abstractmethod

from kimten.domain.models import GenerationRequest, GenerationResult


class BaseBrain(ABC):
    """Base class for text-generation backends"""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Run the model (and any tool calls) and return its reply"""
        pass
