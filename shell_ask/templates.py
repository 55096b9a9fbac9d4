"""
Prompt templates and placeholder substitution.

A template is plain text with `{name}` placeholders. Rendering is a single
pass: substituted values are never scanned again, unknown placeholders are
left as they are, and `{{name}}` renders as a literal `{name}`.
"""

import re

from dataclasses import dataclass, fields, replace
from typing import Dict, Mapping, Optional

from loguru import logger


PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}|\{(\w+)\}")

SYSTEM_PROMPT = """
You are a highly experienced Unix system administrator and command line expert.
The user is working in {shell} on {os}, in the directory {cwd}.

You are given the recent output of the user's terminal and a request written in
natural language. Use the terminal output to understand what the user is doing
(errors they hit, files they listed, commands they ran) and answer the request
with a single shell command that solves it.

Rules:
- Output ONLY the command, on a single line, inside one ```bash code block.
- No explanation, no alternatives, no comments.
- Prefer the simplest command that works in the user's shell.
"""

USER_PROMPT = """
Recent terminal output:
```
{pane}
```

Request: {query}
"""

SYSTEM_PROMPT_NO_PANE = """
You are a highly experienced Unix system administrator and command line expert.
The user is working in {shell} on {os}, in the directory {cwd}.

Given a request written in natural language, answer with a single shell command
that solves it.

Rules:
- Output ONLY the command, on a single line, inside one ```bash code block.
- No explanation, no alternatives, no comments.
- Prefer the simplest command that works in the user's shell.
"""

USER_PROMPT_NO_PANE = """
Request: {query}
"""


@dataclass(frozen=True)
class PromptTemplates:
    """The four template slots: system/user, with and without pane context."""

    system: str = SYSTEM_PROMPT
    user: str = USER_PROMPT
    system_no_pane: str = SYSTEM_PROMPT_NO_PANE
    user_no_pane: str = USER_PROMPT_NO_PANE


TEMPLATE_SLOTS = tuple(f.name for f in fields(PromptTemplates))


@dataclass(frozen=True)
class ResolvedPrompt:
    system: str
    user: str


def load_templates(overrides: Optional[Mapping[str, Optional[str]]] = None) -> PromptTemplates:
    """
    Returns the default templates with the given slots replaced.

    Empty or missing overrides keep the default for that slot. Unknown slot
    names are ignored with a warning.
    """
    changes = {}
    for slot, text in (overrides or {}).items():
        if slot not in TEMPLATE_SLOTS:
            logger.warning("ignoring unknown template slot {}", slot)
            continue
        if text:
            changes[slot] = text
    if changes:
        logger.debug("template overrides: {}", ", ".join(sorted(changes)))
    return replace(PromptTemplates(), **changes)


def render(template: str, values: Mapping[str, str]) -> str:
    """Substitutes known placeholders in one pass over the template."""

    def substitute(match: "re.Match") -> str:
        escaped, name = match.groups()
        if escaped is not None:
            return "{" + escaped + "}"
        if name in values:
            return values[name]
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def build_prompt(
    query: str,
    pane: Optional[str],
    templates: PromptTemplates,
    extra: Optional[Dict[str, str]] = None,
) -> ResolvedPrompt:
    """
    Selects the template pair for the available context and fills it in.

    A pane that is missing or only whitespace selects the `*_no_pane` pair.
    """
    pane = pane or ""
    values = dict(extra or {})
    values["query"] = query
    values["pane"] = pane

    if pane.strip():
        system_template, user_template = templates.system, templates.user
        variant = "with-pane"
    else:
        system_template, user_template = templates.system_no_pane, templates.user_no_pane
        variant = "without-pane"
    logger.debug("template variant={}", variant)

    return ResolvedPrompt(
        system=render(system_template, values).strip(),
        user=render(user_template, values).strip(),
    )
