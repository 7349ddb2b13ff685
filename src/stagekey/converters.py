"""
Cross-stage argument converters.

A converter knows three things about a value type:

- how to parse command-line text into a value (`parse`),
- how to write a value back out as text the other stage can parse again
  (`serialize`),
- the Python expression naming the converter inside generated code
  (`runtime_name`), so the generated program can parse its own arguments.

For every value `x` produced by `conv.parse`, `conv.parse(conv.serialize(x))`
must equal `x`. Emitted declarations rely on this to rebuild configure-time
values in the generated program.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing

T = _typing.TypeVar("T")
U = _typing.TypeVar("U")

# Module path used by generated code to reach the predefined converters
MODULE = "stagekey.converters"

_TRUE_WORDS = frozenset({"true", "yes", "on", "1"})
_FALSE_WORDS = frozenset({"false", "no", "off", "0"})


@_dataclasses.dataclass(frozen=True)
class Converter(_typing.Generic[T]):
    """
    Argument converter for one value type.

    Attributes:
        parse: Text to value. Raises ValueError on malformed input.
        serialize: Value to text accepted by `parse`.
        runtime_name: Python expression evaluating to this converter in
            generated code (e.g. "stagekey.converters.INT").
        docv: Metavariable shown in help output.
    """

    parse: _typing.Callable[[str], T]
    serialize: _typing.Callable[[T], str]
    runtime_name: str
    docv: str = "VALUE"

    def round_trips(self, value: T) -> bool:
        """Check that `value` survives serialize-then-parse unchanged."""
        return self.parse(self.serialize(value)) == value


def create(
    parse: _typing.Callable[[str], T],
    serialize: _typing.Callable[[T], str],
    runtime_name: str,
    docv: str = "VALUE",
) -> Converter[T]:
    """Create a converter for a custom type."""
    return Converter(parse=parse, serialize=serialize, runtime_name=runtime_name, docv=docv)


def _parse_bool(text: str) -> bool:
    word = text.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"expected one of {', '.join(sorted(_TRUE_WORDS | _FALSE_WORDS))}")


def _serialize_bool(value: bool) -> str:
    return "true" if value else "false"


def _parse_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise ValueError(f"{text!r} is not an integer") from None


def _parse_float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"{text!r} is not a number") from None


STRING: Converter[str] = Converter(
    parse=str,
    serialize=str,
    runtime_name=f"{MODULE}.STRING",
    docv="STRING",
)

INT: Converter[int] = Converter(
    parse=_parse_int,
    serialize=str,
    runtime_name=f"{MODULE}.INT",
    docv="INT",
)

# repr() gives the shortest text that parses back to the same float
FLOAT: Converter[float] = Converter(
    parse=_parse_float,
    serialize=repr,
    runtime_name=f"{MODULE}.FLOAT",
    docv="FLOAT",
)

BOOL: Converter[bool] = Converter(
    parse=_parse_bool,
    serialize=_serialize_bool,
    runtime_name=f"{MODULE}.BOOL",
    docv="BOOL",
)


def _escape(text: str, sep: str) -> str:
    return text.replace("\\", "\\\\").replace(sep, "\\" + sep)


def _split_escaped(text: str, sep: str) -> list[str]:
    """Split on unescaped `sep`, removing one level of backslash escaping."""
    parts: list[str] = []
    current: list[str] = []
    chars = iter(text)
    for char in chars:
        if char == "\\":
            escaped = next(chars, None)
            if escaped is None:
                raise ValueError("trailing backslash")
            current.append(escaped)
        elif char == sep:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def list_of(inner: Converter[T], sep: str = ",") -> Converter[list[T]]:
    """
    Converter for lists of `inner` values, written as `a,b,c`.

    The empty string is the empty list. Separators and backslashes inside
    elements are escaped with a backslash, so nested lists round-trip.
    """
    if len(sep) != 1 or sep == "\\":
        raise ValueError(f"list separator must be a single character other than '\\', got {sep!r}")

    def parse(text: str) -> list[T]:
        if text == "":
            return []
        return [inner.parse(part) for part in _split_escaped(text, sep)]

    def serialize(values: list[T]) -> str:
        return sep.join(_escape(inner.serialize(v), sep) for v in values)

    return Converter(
        parse=parse,
        serialize=serialize,
        runtime_name=f"{MODULE}.list_of({inner.runtime_name}, sep={sep!r})",
        docv=f"{inner.docv}{sep}...",
    )


def option_of(inner: Converter[T]) -> Converter[T | None]:
    """
    Converter for optional `inner` values.

    The empty string stands for None; any other text goes through `inner`.
    """

    def parse(text: str) -> T | None:
        if text == "":
            return None
        return inner.parse(text)

    def serialize(value: T | None) -> str:
        if value is None:
            return ""
        return inner.serialize(value)

    return Converter(
        parse=parse,
        serialize=serialize,
        runtime_name=f"{MODULE}.option_of({inner.runtime_name})",
        docv=inner.docv,
    )
