from __future__ import annotations


class TextileError(Exception):
    """Base class for errors that abort a textile run."""


class ConfigurationError(TextileError, ValueError):
    """
    The texture config, the pass file set or the capability set is inconsistent.

    Examples: a texture without a known category prefix, a transient texture
    that is never accessed, more live tiles than the slot grid supports.
    """


class MissingInputError(TextileError, FileNotFoundError):
    """A referenced input (included file, config file) does not exist."""


class PreprocessorError(TextileError, RuntimeError):
    """The external C preprocessor could not be run or exited non-zero."""
