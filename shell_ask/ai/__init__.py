"""
The `ai` package talks to the language model: the provider clients and the
pipeline that turns a request into a command.
"""

from .assistant import AskResult, Stage, suggest_command
from .llm import AnthropicProvider, NanoGPTProvider, OpenAIProvider, Provider, create_provider


__all__ = [
    "AskResult",
    "Stage",
    "suggest_command",
    "Provider",
    "OpenAIProvider",
    "AnthropicProvider",
    "NanoGPTProvider",
    "create_provider",
]
