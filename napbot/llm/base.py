"""LLM provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from napbot.models import LLMResponse


class LLMProvider(ABC):
    """Abstract model provider used by the chat responders."""

    @property
    def is_available(self) -> bool:
        return True

    @abstractmethod
    async def generate(self, messages: list[dict[str, str]]) -> LLMResponse:
        """Generate a model response."""
