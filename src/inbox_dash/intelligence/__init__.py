"""LLM-powered classification and assistant services."""

from .assistant import LLMAssistantService
from .classifier import LLMClassificationService
from .llm import LLMClient, LLMError, OllamaClient, describe_llm_error
from .results import AnalysisKind, AnalysisResult, empty_result

__all__ = [
    "AnalysisKind",
    "AnalysisResult",
    "LLMAssistantService",
    "LLMClassificationService",
    "LLMClient",
    "LLMError",
    "OllamaClient",
    "describe_llm_error",
    "empty_result",
]
