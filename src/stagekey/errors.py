"""
Exception types raised by stagekey.

Unresolved keys are never an error: evaluation always falls back to the
key's default. Everything below is either an authoring bug (duplicate
names, stage misuse) or bad user input (parse failures).
"""

from __future__ import annotations


class StagekeyError(Exception):
    """Base class for all stagekey errors."""

    pass


class DuplicateKeyError(StagekeyError, ValueError):
    """Raised when a key name (or its derived binding name) is registered twice."""

    def __init__(self, name: str, existing: str | None = None) -> None:
        self.name = name
        self.existing = existing or name
        if self.existing == name:
            message = f"Key '{name}' is already registered"
        else:
            message = (
                f"Key '{name}' clashes with registered key '{self.existing}' "
                f"(both bind to the same identifier)"
            )
        super().__init__(message)


class UnknownKeyError(StagekeyError, KeyError):
    """Raised when looking up a key name that was never registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown key '{self.name}'"


class ParseError(StagekeyError):
    """
    Raised when command-line input cannot be turned into a key's value.

    Attributes:
        key_name: Name of the offending key (or the unknown option).
        raw: The raw text given on the command line, if any.
    """

    def __init__(self, key_name: str, raw: str | None, message: str) -> None:
        self.key_name = key_name
        self.raw = raw
        self.message = message
        if raw is None:
            super().__init__(f"{key_name}: {message}")
        else:
            super().__init__(f"{key_name}: invalid value {raw!r}: {message}")


class StageMismatchError(StagekeyError):
    """Raised when a key is bound at a stage it does not belong to."""

    pass
