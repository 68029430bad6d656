"""AI/LLM adapters for experiment variant generation."""
from emailflow.services.adapters.ai.openai_adapter import OpenAIAdapter
from emailflow.services.adapters.ai.mock import MockAIAdapter

__all__ = ["OpenAIAdapter", "MockAIAdapter"]
