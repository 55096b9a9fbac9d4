"""Errors surfaced to the command line. Each kind maps to its own exit status."""


class AskError(Exception):
    """Base class for every failure that aborts an invocation."""

    exit_code = 1


class ConfigError(AskError):
    """Missing or invalid configuration: provider, credential, config file."""

    exit_code = 3


class TransportError(AskError):
    """The request never got a response: connection failure or timeout."""

    exit_code = 4

    def __init__(self, message: str):
        super().__init__(f"{message.rstrip('.')}. Check your connection and re-run the command.")


class BackendError(AskError):
    """The backend answered with a non-success status or an error payload."""

    exit_code = 5

    def __init__(self, message: str, status_code=None):
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)
        self.status_code = status_code


class ResponseError(AskError):
    """The backend answered, but not in the shape we expected."""

    exit_code = 6
