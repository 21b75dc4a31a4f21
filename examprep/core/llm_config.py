import os
from typing import Optional
from langchain_openai import ChatOpenAI
from pydantic import SecretStr
from examprep.core.config import settings

class LLMFactory:
    """Factory for creating configured LLM instances with tracing."""

    @staticmethod
    def is_configured() -> bool:
        """Whether an API key is available for LLM calls."""
        return bool(settings.OPENAI_API_KEY)

    @staticmethod
    def create_llm(
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.7,
        tracing_project: Optional[str] = None,
        api_key: Optional[str] = None
    ) -> ChatOpenAI:
        """
        Create a configured ChatOpenAI instance.

        Args:
            model: The model name to use (defaults to settings.LLM_MODEL).
            base_url: Alternative OpenAI-compatible endpoint.
            temperature: The temperature for generation.
            tracing_project: The LangSmith project name for tracing.
            api_key: OpenAI API key (optional, defaults to settings).
        """
        # Set env vars for tracing if provided
        if settings.LANGSMITH_TRACING:
            os.environ["LANGCHAIN_TRACING_V2"] = "true"
            os.environ["LANGCHAIN_ENDPOINT"] = settings.LANGSMITH_ENDPOINT
            os.environ["LANGCHAIN_API_KEY"] = settings.LANGSMITH_API_KEY
            os.environ["LANGCHAIN_PROJECT"] = tracing_project or settings.LANGSMITH_PROJECT

        return ChatOpenAI(
            model=model or settings.LLM_MODEL,
            api_key=SecretStr(api_key or settings.OPENAI_API_KEY),
            base_url=base_url or settings.OPENAI_BASE_URL or None,
            temperature=temperature,
        )
