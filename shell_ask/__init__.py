"""
`shell_ask` turns a natural-language request into a shell command using a
language-model backend, with the recent terminal output as context.
"""

__version__ = "0.1.0"
