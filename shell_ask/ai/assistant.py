import enum

from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from loguru import logger

from ..config import AskConfig
from ..context import capture_pane, environment_facts
from ..errors import AskError
from ..parser import parse_command
from ..templates import ResolvedPrompt, build_prompt
from .llm import Provider, create_provider


class Stage(enum.Enum):
    CAPTURE_CONTEXT = "capture-context"
    BUILD_PROMPT = "build-prompt"
    DISPATCH = "dispatch"
    PARSE = "parse"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class AskResult:
    """What one invocation produced. `output` is what gets printed."""

    output: str
    raw: str
    prompt: ResolvedPrompt
    parsed: bool


def _enter(stage: Stage):
    logger.debug("stage={}", stage.value)


def suggest_command(
    config: AskConfig,
    query: str,
    provider: Optional[Provider] = None,
    environ: Optional[Mapping[str, str]] = None,
    on_prompt: Optional[Callable[[ResolvedPrompt], None]] = None,
) -> AskResult:
    """
    Turns a natural-language request into a shell command.

    The stages run once each, in order: capture the pane, build the prompt,
    send it, then parse the answer. In debug mode the raw answer is returned
    as is and the parser is skipped. Errors from the provider propagate to
    the caller.

    `on_prompt`, if given, receives the resolved prompt before it is sent.
    """
    _enter(Stage.CAPTURE_CONTEXT)
    pane = capture_pane(environ, source=config.pane_source, lines=config.pane_lines)

    _enter(Stage.BUILD_PROMPT)
    prompt = build_prompt(query, pane, config.templates, environment_facts(environ))
    if on_prompt is not None:
        on_prompt(prompt)

    _enter(Stage.DISPATCH)
    try:
        if provider is None:
            provider = create_provider(config.provider)
        raw = provider.complete(prompt)
    except AskError as e:
        logger.debug("stage={} error={}", Stage.FAILED.value, type(e).__name__)
        raise

    if config.debug:
        _enter(Stage.DONE)
        return AskResult(output=raw, raw=raw, prompt=prompt, parsed=False)

    _enter(Stage.PARSE)
    command = parse_command(raw)

    _enter(Stage.DONE)
    return AskResult(output=command, raw=raw, prompt=prompt, parsed=True)
