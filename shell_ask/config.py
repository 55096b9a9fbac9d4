"""
Resolves everything one invocation needs from the command line, the
environment and an optional JSON config file, in that order of precedence.
"""

import json
import os

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from loguru import logger

from .context import DEFAULT_PANE_LINES, PANE_SOURCES
from .errors import ConfigError
from .templates import TEMPLATE_SLOTS, PromptTemplates, load_templates


DEFAULT_PROVIDER = "openai"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_TOKENS = 4096
DEFAULT_CONFIG_PATH = os.path.join("~", ".config", "shell-ask", "config.json")

TRUTHY = ("1", "true", "yes", "on")

# Environment variable for each template slot.
TEMPLATE_ENV_VARS = {
    "system": "ASK_SYSTEM_PROMPT",
    "user": "ASK_USER_PROMPT",
    "system_no_pane": "ASK_SYSTEM_PROMPT_NO_PANE",
    "user_no_pane": "ASK_USER_PROMPT_NO_PANE",
}


@dataclass(frozen=True)
class ProviderDefaults:
    default_model: str
    api_key_env: str
    base_url: Optional[str] = None


PROVIDER_DEFAULTS: Dict[str, ProviderDefaults] = {
    "openai": ProviderDefaults("gpt-4o-mini", "OPENAI_API_KEY"),
    "anthropic": ProviderDefaults("claude-3-5-haiku-latest", "ANTHROPIC_API_KEY"),
    "nanogpt": ProviderDefaults("gpt-4o", "NANOGPT_API_KEY", "https://nano-gpt.com/api/v1"),
}


@dataclass(frozen=True)
class ProviderConfig:
    provider: str
    model: str
    api_key: str = field(repr=False)
    base_url: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    max_tokens: int = DEFAULT_MAX_TOKENS


@dataclass(frozen=True)
class AskConfig:
    provider: ProviderConfig
    templates: PromptTemplates = field(default_factory=PromptTemplates)
    debug: bool = False
    pane_source: str = "env"
    pane_lines: int = DEFAULT_PANE_LINES


def is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


def read_config_file(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Dict:
    """
    Reads the JSON config file.

    A missing file at the default location is not an error; a file that was
    explicitly asked for (argument or `ASK_CONFIG`) must exist.
    """
    environ = os.environ if environ is None else environ
    explicit = path or environ.get("ASK_CONFIG")
    config_path = os.path.expanduser(explicit or DEFAULT_CONFIG_PATH)

    if not explicit and not os.path.exists(config_path):
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as config_file:
            data = json.load(config_file)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Error reading or parsing config file '{config_path}': {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{config_path}' must contain a JSON object.")
    logger.debug("loaded config file {}", config_path)
    return data


def _first(*values):
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _number(name: str, value: Any, cast):
    try:
        number = cast(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{name}' must be a number, got {value!r}.") from None
    if number <= 0:
        raise ConfigError(f"'{name}' must be greater than zero, got {value!r}.")
    return number


def resolve_provider_config(
    file_config: Dict,
    environ: Mapping[str, str],
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> ProviderConfig:
    """Picks the provider and its credential. Raises `ConfigError` if either is unusable."""
    name = _first(provider, environ.get("ASK_PROVIDER"), file_config.get("provider"), DEFAULT_PROVIDER)
    name = str(name).strip().lower()
    defaults = PROVIDER_DEFAULTS.get(name)
    if defaults is None:
        available = ", ".join(sorted(PROVIDER_DEFAULTS))
        raise ConfigError(f"Unknown provider '{name}'. Available providers: {available}.")

    api_key = _first(environ.get("ASK_API_KEY"), environ.get(defaults.api_key_env), file_config.get("api_key"))
    if not api_key:
        raise ConfigError(
            f"No API key found for provider '{name}'. "
            f"Set {defaults.api_key_env} (or ASK_API_KEY) in your environment."
        )

    return ProviderConfig(
        provider=name,
        model=_first(model, environ.get("ASK_MODEL"), file_config.get("model"), defaults.default_model),
        api_key=api_key,
        base_url=_first(environ.get("ASK_BASE_URL"), file_config.get("base_url"), defaults.base_url),
        timeout=_number(
            "timeout", _first(environ.get("ASK_TIMEOUT"), file_config.get("timeout"), DEFAULT_TIMEOUT), float
        ),
        max_tokens=_number(
            "max_tokens",
            _first(environ.get("ASK_MAX_TOKENS"), file_config.get("max_tokens"), DEFAULT_MAX_TOKENS),
            int,
        ),
    )


def resolve_templates(file_config: Dict, environ: Mapping[str, str]) -> PromptTemplates:
    file_templates = file_config.get("templates") or {}
    if not isinstance(file_templates, dict):
        raise ConfigError("'templates' in the config file must be a JSON object.")

    overrides = dict(file_templates)
    for slot in TEMPLATE_SLOTS:
        env_value = environ.get(TEMPLATE_ENV_VARS[slot])
        if env_value:
            overrides[slot] = env_value
    return load_templates(overrides)


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[str] = None,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    debug: Optional[bool] = None,
    no_pane: bool = False,
) -> AskConfig:
    """
    Builds the configuration for one invocation.

    Keyword arguments come from the command line and win over the
    environment, which wins over the config file.
    """
    environ = os.environ if environ is None else environ
    file_config = read_config_file(config_path, environ)

    if debug is None:
        debug = is_truthy(_first(environ.get("ASK_DEBUG"), file_config.get("debug"), False))

    pane_source = str(_first(environ.get("ASK_PANE_SOURCE"), file_config.get("pane_source"), "env")).lower()
    if pane_source not in PANE_SOURCES:
        raise ConfigError(f"Unknown pane source '{pane_source}'. Use one of: {', '.join(PANE_SOURCES)}.")
    if no_pane or is_truthy(environ.get("ASK_NO_PANE", "")):
        pane_source = "none"

    pane_lines = _first(environ.get("ASK_PANE_LINES"), file_config.get("pane_lines"), DEFAULT_PANE_LINES)

    config = AskConfig(
        provider=resolve_provider_config(file_config, environ, provider, model),
        templates=resolve_templates(file_config, environ),
        debug=debug,
        pane_source=pane_source,
        pane_lines=_number("pane_lines", pane_lines, int),
    )
    logger.debug(
        "resolved provider={} model={} pane_source={}",
        config.provider.provider,
        config.provider.model,
        config.pane_source,
    )
    return config
