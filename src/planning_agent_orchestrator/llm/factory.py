"""Factory for creating LLM providers."""

import logging

from planning_agent_orchestrator.core.config import LLMConfig
from planning_agent_orchestrator.llm.llama_provider import LLaMAProvider
from planning_agent_orchestrator.llm.openai_provider import OpenAIProvider
from planning_agent_orchestrator.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class LLMFactory:
    """Factory for creating LLM provider instances."""

    @staticmethod
    def create(config: LLMConfig) -> LLMProvider:
        """Create an LLM provider based on configuration.

        Args:
            config: LLM configuration specifying the provider.

        Returns:
            Configured LLM provider instance.

        Raises:
            ValueError: If provider type is not supported or misconfigured.
        """
        logger.info("Creating LLM provider", extra={"provider": config.provider})

        if config.provider == "openai":
            return OpenAIProvider(config)
        if config.provider == "llama":
            return LLaMAProvider(config)
        raise ValueError(f"Unsupported LLM provider: {config.provider}")
