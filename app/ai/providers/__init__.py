"""Provider implementations."""

from app.ai.providers.base import AIProvider, RawCompletion
from app.ai.providers.gemini import GeminiProvider
from app.ai.providers.openai import OpenAIProvider

__all__ = ["AIProvider", "RawCompletion", "GeminiProvider", "OpenAIProvider"]
