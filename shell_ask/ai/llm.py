import time

from abc import ABC, abstractmethod
from typing import Dict, List, Type

import aisuite
import anthropic
import openai
from aisuite.provider import LLMError
from loguru import logger

from ..config import ProviderConfig
from ..errors import AskError, BackendError, ConfigError, ResponseError, TransportError
from ..templates import ResolvedPrompt


class Provider(ABC):
    """
    Sends a (system, user) message pair to a chat completion backend and
    returns the assistant's text.
    """

    name = ""

    def __init__(self, config: ProviderConfig):
        self.config = config

    @staticmethod
    def format_system_message(content: str) -> Dict:
        return {"role": "system", "content": content}

    @staticmethod
    def format_user_message(content: str) -> Dict:
        return {"role": "user", "content": content}

    def format_messages(self, prompt: ResolvedPrompt) -> List[Dict]:
        return [
            self.format_system_message(prompt.system),
            self.format_user_message(prompt.user),
        ]

    @abstractmethod
    def complete(self, prompt: ResolvedPrompt) -> str:
        pass


class ChatProvider(Provider):
    """
    A provider backed by the aisuite client. aisuite shapes the request for
    each SDK; subclasses name the SDK whose exceptions they translate.
    """

    # Provider key understood by aisuite, and the SDK module it wraps.
    aisuite_key = ""
    sdk = None

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.client = aisuite.Client({self.aisuite_key: self.client_options()})

    def client_options(self) -> Dict:
        # One request per invocation: the SDK must not retry behind our back.
        options = {
            "api_key": self.config.api_key,
            "timeout": self.config.timeout,
            "max_retries": 0,
        }
        if self.config.base_url:
            options["base_url"] = self.config.base_url
        return options

    @property
    def model_id(self) -> str:
        return f"{self.aisuite_key}:{self.config.model}"

    def complete(self, prompt: ResolvedPrompt) -> str:
        logger.debug("sending request to {} model={}", self.name, self.model_id)
        started = time.monotonic()
        try:
            response = self.client.chat.completions.create(
                model=self.model_id,
                messages=self.format_messages(prompt),
                max_tokens=self.config.max_tokens,
            )
        except (self.sdk.APIError, LLMError) as e:
            logger.debug("{} request failed: {!r}", self.name, e)
            raise self.translate_error(e) from e
        logger.debug("{} answered in {:.2f}s", self.name, time.monotonic() - started)
        return self.extract_text(response)

    def extract_text(self, response) -> str:
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            raise ResponseError(f"Malformed response from {self.name}: no message in the reply.") from e
        if not isinstance(content, str):
            raise ResponseError(f"Malformed response from {self.name}: the reply has no text content.")
        return content

    def unwrap_error(self, error: Exception) -> Exception:
        """
        aisuite wraps some SDK failures in `LLMError` ("An error occurred: ..."),
        raised while handling the original. Returns that original when it
        belongs to our SDK.
        """
        if isinstance(error, LLMError):
            inner = error.__cause__ or error.__context__
            if isinstance(inner, self.sdk.APIError):
                return inner
        return error

    def translate_error(self, error: Exception) -> AskError:
        sdk = self.sdk
        error = self.unwrap_error(error)
        if isinstance(error, (sdk.AuthenticationError, sdk.PermissionDeniedError)):
            return ConfigError(f"{self.name} rejected the API key: {error.message}")
        if isinstance(error, sdk.APITimeoutError):
            return TransportError(f"Request to {self.name} timed out after {self.config.timeout:g}s")
        if isinstance(error, sdk.APIConnectionError):
            return TransportError(f"Could not reach {self.name}: {error.message}")
        if isinstance(error, sdk.APIStatusError):
            return BackendError(f"{self.name} returned an error: {error.message}", error.status_code)
        if isinstance(error, LLMError):
            return BackendError(f"{self.name} returned an error: {error}")
        return ResponseError(f"Malformed response from {self.name}: {error}")


class OpenAIProvider(ChatProvider):
    name = "OpenAI"
    aisuite_key = "openai"
    sdk = openai


class AnthropicProvider(ChatProvider):
    name = "Anthropic"
    aisuite_key = "anthropic"
    sdk = anthropic


class NanoGPTProvider(OpenAIProvider):
    """NanoGPT serves an OpenAI-compatible API on its own endpoint."""

    name = "NanoGPT"
    default_base_url = "https://nano-gpt.com/api/v1"

    def client_options(self) -> Dict:
        options = super().client_options()
        options.setdefault("base_url", self.default_base_url)
        return options


PROVIDERS: Dict[str, Type[Provider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "nanogpt": NanoGPTProvider,
}


def create_provider(config: ProviderConfig) -> Provider:
    provider_class = PROVIDERS.get(config.provider)
    if provider_class is None:
        raise ConfigError(f"Unknown provider '{config.provider}'.")
    return provider_class(config)
