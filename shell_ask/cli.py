#!/usr/bin/env python3

import argparse
import argcomplete
import os
import sys

from abc import ABC, abstractmethod
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel

from .ai import suggest_command
from .config import PROVIDER_DEFAULTS, is_truthy, load_config
from .errors import AskError
from .log import configure_logging
from .templates import ResolvedPrompt


class Argument(ABC):
    def __init__(self, help: str, kwargs: Optional[dict] = None):
        self.help = help
        self.kwargs = kwargs if kwargs is not None else {}

    @abstractmethod
    def add_to_parser(self, parser: argparse.ArgumentParser):
        pass


class OptionalArg(Argument):
    def __init__(
        self,
        short_option: str,
        long_option: str,
        help: str,
        kwargs: Optional[dict] = None,
    ):
        super().__init__(help=help, kwargs=kwargs)
        self.short_option = short_option
        self.long_option = long_option

    def add_to_parser(self, parser: argparse.ArgumentParser):
        parser.add_argument(
            self.short_option, self.long_option, help=self.help, **self.kwargs
        )


class PositionalArg(Argument):
    def __init__(self, name: str, help: str, kwargs: Optional[dict] = None):
        super().__init__(help=help, kwargs=kwargs)
        self.name = name

    def add_to_parser(self, parser: argparse.ArgumentParser):
        parser.add_argument(self.name, help=self.help, **self.kwargs)


_arguments: List[Argument] = [
    PositionalArg(
        name="query",
        help="What you want to do, in plain words.",
        kwargs={"nargs": "*"},
    ),
    OptionalArg(
        short_option="-d",
        long_option="--debug",
        help="Print the model's raw answer without parsing it, and log what happens.",
        kwargs={"action": "store_true", "default": None},
    ),
    OptionalArg(
        short_option="-n",
        long_option="--no-pane",
        help="Do not send the recent terminal output to the model.",
        kwargs={"action": "store_true"},
    ),
    OptionalArg(
        short_option="-p",
        long_option="--provider",
        help="The model provider to use.",
        kwargs={"choices": sorted(PROVIDER_DEFAULTS)},
    ),
    OptionalArg(
        short_option="-m",
        long_option="--model",
        help="The model to use. Defaults depend on the provider.",
    ),
    OptionalArg(
        short_option="-c",
        long_option="--config",
        help="Path to a JSON config file.",
    ),
]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ask",
        description="Turn a plain-language request into a shell command.",
    )
    for arg in _arguments:
        arg.add_to_parser(parser)
    return parser


def _show_prompt(prompt: ResolvedPrompt):
    console = Console(stderr=True)
    console.print(Panel(prompt.system, title="system", title_align="left"))
    console.print(Panel(prompt.user, title="user", title_align="left"))


def run_cli(argv: Optional[List[str]] = None):
    """
    Parses command-line arguments, asks the model and prints the command.

    Args:
        argv: A list of strings representing the command-line arguments.
              If None, `sys.argv[1:]` is used automatically by `parse_args`.
    """
    parser = build_parser()

    # Enable argument auto-completion.
    argcomplete.autocomplete(parser)

    args = parser.parse_args(argv)
    query = " ".join(args.query).strip()
    if not query:
        parser.error("tell me what you want to do, e.g. ask how can I undo git commit")

    debug_logging = bool(args.debug or is_truthy(os.getenv("ASK_DEBUG", "")))
    configure_logging(debug_logging)
    try:
        config = load_config(
            config_path=args.config,
            provider=args.provider,
            model=args.model,
            debug=args.debug,
            no_pane=args.no_pane,
        )
        if config.debug and not debug_logging:
            configure_logging(True)
        result = suggest_command(config, query, on_prompt=_show_prompt if config.debug else None)
    except AskError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        sys.exit(130)

    print(result.output)


def main():
    """The main entry point for the command-line interface, called by the `ask` script."""
    run_cli()


if __name__ == "__main__":
    main()
