"""
Command-line information attached to a key.

The same information describes the option at both stages: the configure
term builds its click options from it, and runtime declarations carry it
into generated code so the generated program's parser looks the same.
"""

from __future__ import annotations

import keyword as _keyword
import re as _re
import typing as _typing

import pydantic as _pydantic

_NON_IDENTIFIER = _re.compile(r"[^a-z0-9_]")


def identifier(name: str) -> str:
    """
    Python identifier derived from a key name.

    Lowercases, maps every other character to `_`, prefixes a leading
    digit with `_` and suffixes Python keywords with `_`.
    """
    ident = _NON_IDENTIFIER.sub("_", name.lower())
    if not ident or ident[0].isdigit():
        ident = "_" + ident
    if _keyword.iskeyword(ident) or _keyword.issoftkeyword(ident):
        ident += "_"
    return ident


def option_name(name: str) -> str:
    """Turn a key or alias name into a long option, e.g. buffer_size -> --buffer-size."""
    if len(name) == 1:
        return f"-{name}"
    return "--" + name.replace("_", "-")


class ArgInfo(_pydantic.BaseModel):
    """
    Cross-stage argument information.

    `names[0]` is the primary name (the key name); further entries are
    aliases. Single-character names become short options.
    """

    model_config = _pydantic.ConfigDict(extra="forbid", frozen=True)

    names: tuple[str, ...]
    """Primary name followed by aliases."""

    doc: str = ""
    """Help text."""

    docv: str | None = None
    """Metavariable shown in help (defaults to the converter's)."""

    docs: str | None = None
    """Help section the option is listed under."""

    env: str | None = None
    """Environment variable consulted when the option is absent."""

    @_pydantic.field_validator("names")
    @classmethod
    def _check_names(cls, names: tuple[str, ...]) -> tuple[str, ...]:
        if not names:
            raise ValueError("an argument needs at least one name")
        for name in names:
            if not name or name.startswith("-") or any(c.isspace() for c in name):
                raise ValueError(f"invalid argument name {name!r}")
        return names

    @property
    def primary(self) -> str:
        return self.names[0]

    def option_names(self) -> list[str]:
        """Option declarations for click, primary name first."""
        return [option_name(n) for n in self.names]

    def help_text(self, default_text: str | None = None) -> str:
        """Help string including the env var and default, if any."""
        parts = [self.doc] if self.doc else []
        if self.env:
            parts.append(f"(env: {self.env})")
        if default_text is not None:
            parts.append(f"[default: {default_text}]")
        text = " ".join(parts)
        if self.docs:
            text = f"[{self.docs}] {text}"
        return text

    def emit(self) -> str:
        """Python keyword arguments reproducing this info in generated code."""
        args = [f"doc={self.doc!r}"]
        if len(self.names) > 1:
            args.append(f"aliases={list(self.names[1:])!r}")
        if self.docv is not None:
            args.append(f"docv={self.docv!r}")
        if self.docs is not None:
            args.append(f"docs={self.docs!r}")
        if self.env is not None:
            args.append(f"env={self.env!r}")
        return ", ".join(args)

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "names": list(self.names),
            "doc": self.doc,
            "docv": self.docv,
            "docs": self.docs,
            "env": self.env,
        }
