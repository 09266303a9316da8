"""Chat models for the guidance, mood, exercise and insight agents."""

from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

from breathwork.config.settings import settings


def get_model(model_name: str, provider: str = "openai") -> OpenAIChatModel:
    """Chat model for an Agent, authenticated with the configured API key.

    Raises:
        ValueError: For any provider other than OpenAI
    """
    if provider != "openai":
        raise ValueError(f"Unsupported LLM provider: {provider}")
    return OpenAIChatModel(model_name, provider=OpenAIProvider(api_key=settings.openai_api_key))
