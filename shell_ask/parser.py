"""
Isolates a runnable command from the text a model answered with.

Models wrap commands in code fences, add an introduction or explain what the
command does afterwards. `parse_command` removes that scaffolding when it can
and otherwise hands back the whole answer, so the user always has something
to look at.
"""

import re

from typing import Optional

from loguru import logger


# Optional language tag on the opening line, or an inline ```cmd```.
FENCED_BLOCK_PATTERN = re.compile(r"```(?:[\w+#.-]*[ \t]*\n)?(.*?)```", re.DOTALL)
INLINE_CODE_PATTERN = re.compile(r"^`([^`]+)`$")
PROMPT_MARKER_PATTERN = re.compile(r"^[$#>]\s+")
# A shell tag glued to a one-line fence: ```bash ls -la```. Options such as
# `sh -c` are left alone.
INLINE_SHELL_TAG_PATTERN = re.compile(r"^(?:bash|sh|zsh|shell|console)[ \t]+(?=[^\s-])")

MIN_SENTENCE_WORDS = 4


def _fenced_command(text: str) -> Optional[str]:
    for block in FENCED_BLOCK_PATTERN.findall(text):
        command = block.strip()
        if "\n" not in command:
            command = INLINE_SHELL_TAG_PATTERN.sub("", command, count=1)
        if command:
            return command
    return None


def _unquote(line: str) -> str:
    match = INLINE_CODE_PATTERN.match(line)
    if match:
        return match.group(1).strip()
    return line


def _looks_like_prose(line: str) -> bool:
    if line.endswith(":"):
        return True
    words = line.split()
    return (
        len(words) >= MIN_SENTENCE_WORDS
        and line[0].isupper()
        and line[-1] in ".!?"
    )


def extract_command(raw: str) -> Optional[str]:
    """
    Returns the command found in `raw`, or None if none can be told apart.

    In order of preference: the first non-empty fenced code block, an answer
    that is a single line (kept as is, minus wrapping backticks), and finally
    the last line that does not read like a sentence.
    """
    text = raw.strip()
    if not text:
        return None

    fenced = _fenced_command(text)
    if fenced is not None:
        return fenced

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if len(lines) == 1:
        return _unquote(lines[0])

    for line in reversed(lines):
        if _looks_like_prose(line):
            continue
        return PROMPT_MARKER_PATTERN.sub("", _unquote(line), count=1)

    return None


def parse_command(raw: str) -> str:
    """Returns the isolated command, or the raw answer when isolation fails."""
    command = extract_command(raw)
    if command is None:
        logger.debug("no command could be isolated, returning the raw answer")
        return raw
    return command
