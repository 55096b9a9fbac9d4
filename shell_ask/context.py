"""
Captures what recently appeared in the user's terminal.

Capturing never fails: when no context is available, or something goes wrong
while reading it, the pane is simply empty.
"""

import os
import platform
import re
import subprocess

from typing import Dict, Mapping, Optional

from loguru import logger


PANE_SOURCES = ("env", "tmux", "none")
DEFAULT_PANE_LINES = 100
TMUX_TIMEOUT_SECONDS = 2

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]|\x1b\][^\x07]*\x07")


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_PATTERN.sub("", text)


def _trim(text: str, lines: int) -> str:
    text = strip_ansi(text).rstrip()
    if not text.strip():
        return ""
    if lines > 0:
        text = "\n".join(text.splitlines()[-lines:])
    return text


def _read_tmux_pane(environ: Mapping[str, str], lines: int) -> str:
    if not environ.get("TMUX") or not environ.get("TMUX_PANE"):
        logger.debug("pane source is tmux but we are not inside a tmux session")
        return ""

    cmd = ["tmux", "capture-pane", "-p", "-t", environ["TMUX_PANE"]]
    if lines > 0:
        cmd.extend(["-S", f"-{lines}"])
    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=True,
            timeout=TMUX_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("could not capture the tmux pane: {}", e)
        return ""
    return result.stdout


def capture_pane(
    environ: Optional[Mapping[str, str]] = None,
    source: str = "env",
    lines: int = DEFAULT_PANE_LINES,
) -> str:
    """
    Returns the recent terminal output, or an empty string.

    Args:
        environ: The environment to read from. Defaults to `os.environ`.
        source: `env` reads `ASK_PANE_CONTENT`, `tmux` asks tmux for the
                current pane and `none` disables capturing.
        lines: Keep only this many trailing lines (0 keeps everything).
    """
    environ = os.environ if environ is None else environ

    if source == "none":
        text = ""
    elif source == "tmux":
        text = _read_tmux_pane(environ, lines)
    else:
        text = environ.get("ASK_PANE_CONTENT", "")

    pane = _trim(text, lines)
    logger.debug("captured pane source={} chars={}", source, len(pane))
    return pane


def _os_name() -> str:
    system = platform.system()
    if system == "Darwin":
        return "macOS"
    return system or "Unix"


def environment_facts(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Extra values for the prompt templates: `shell`, `os` and `cwd`."""
    environ = os.environ if environ is None else environ
    shell = os.path.basename(environ.get("SHELL", "")) or "sh"
    try:
        cwd = os.getcwd()
    except OSError:
        cwd = environ.get("PWD", "")
    return {"shell": shell, "os": _os_name(), "cwd": cwd}
