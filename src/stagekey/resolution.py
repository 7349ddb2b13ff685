"""
Resolution maps: the result of parsing input for one stage.

A map only holds *explicit* entries (values given on the command line, in
the environment, or set by a proxy). Reading a key that has no entry
yields the key's default, so evaluation never fails:

    resolved = resolver.resolve([port], ["--port=9090"])
    get(resolved, port)         # 9090
    get(EMPTY, port)            # port.default

`is_resolved` and `peek` are for callers that must tell explicit values
apart from defaults, e.g. to decide whether a value can be baked into
generated code.
"""

from __future__ import annotations

import collections.abc as _abc
import typing as _typing

import yaml as _yaml

import stagekey.errors as errors

if _typing.TYPE_CHECKING:
    import stagekey.keys as _keys
    import stagekey.algebra as _algebra

T = _typing.TypeVar("T")


class ResolutionMap(_abc.Mapping[str, _typing.Any]):
    """Immutable mapping from key name to explicitly resolved value."""

    __slots__ = ("_entries",)

    def __init__(self, entries: _abc.Mapping[str, _typing.Any] | None = None) -> None:
        self._entries: dict[str, _typing.Any] = dict(entries or {})

    def __getitem__(self, name: str) -> _typing.Any:
        return self._entries[name]

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ResolutionMap({self._entries!r})"

    def has(self, key: _keys.Key[_typing.Any]) -> bool:
        """True if `key` has an explicit entry."""
        return key.name in self._entries

    def find(self, key: _keys.Key[T]) -> T:
        """The explicit entry for `key`, or its default."""
        if key.name in self._entries:
            return _typing.cast(T, self._entries[key.name])
        return key.default

    def with_entries(self, entries: _abc.Mapping[_keys.Key[_typing.Any], _typing.Any]) -> ResolutionMap:
        """A new map with `entries` added (replacing existing ones)."""
        merged = dict(self._entries)
        merged.update((k.name, v) for k, v in entries.items())
        return ResolutionMap(merged)

    def merge(self, other: ResolutionMap) -> ResolutionMap:
        """A new map with the entries of both; `other` wins on conflicts."""
        return ResolutionMap({**self._entries, **other._entries})

    def names(self) -> list[str]:
        """Sorted names of the explicit entries."""
        return sorted(self._entries)


EMPTY = ResolutionMap()


def get(resolved: ResolutionMap, key: _keys.Key[T]) -> T:
    """Resolve `key`, using its default if there is no explicit entry."""
    return resolved.find(key)


def eval_(resolved: ResolutionMap, v: _algebra.Value[T]) -> T:
    """Resolve `v`, using default values where necessary."""
    return v.evaluate(resolved)


def is_resolved(resolved: ResolutionMap, v: _algebra.Value[_typing.Any]) -> bool:
    """True iff every dependency of `v` has an explicit entry."""
    return all(resolved.has(k) for k in v.deps)


def peek(resolved: ResolutionMap, v: _algebra.Value[T]) -> T | None:
    """The result of `v` if it is fully resolved, otherwise None."""
    if is_resolved(resolved, v):
        return v.evaluate(resolved)
    return None


def format_map(resolved: ResolutionMap, keys: _abc.Iterable[_keys.Key[_typing.Any]]) -> str:
    """Print `keys` with their values in `resolved`, e.g. "port=9090, verbose=false"."""
    return ", ".join(
        f"{k.name}={k.converter.serialize(get(resolved, k))}"
        for k in sorted(keys, key=lambda k: k.name)
    )


def dump_map(resolved: ResolutionMap, keys: _abc.Iterable[_keys.Key[_typing.Any]]) -> str:
    """
    Persist the explicit entries of `resolved` for `keys` as YAML.

    Values are written in their serialized text form, so `load_map` can
    parse them back with each key's converter.
    """
    data = {
        k.name: k.converter.serialize(resolved[k.name])
        for k in keys
        if resolved.has(k)
    }
    return _yaml.safe_dump(data, default_flow_style=False, sort_keys=True)


def load_map(text: str, keys: _abc.Iterable[_keys.Key[_typing.Any]]) -> ResolutionMap:
    """
    Load a map written by `dump_map`.

    Raises:
        UnknownKeyError: If the document names a key not in `keys`.
        ParseError: If the document is not a mapping or a value is malformed.
    """
    try:
        data = _yaml.safe_load(text)
    except _yaml.YAMLError as e:
        raise errors.ParseError("<saved map>", None, f"invalid YAML: {e}") from e

    if data is None:
        return EMPTY
    if not isinstance(data, dict):
        raise errors.ParseError("<saved map>", None, "expected a mapping of key names to values")

    by_name = {k.name: k for k in keys}
    entries: dict[str, _typing.Any] = {}
    for name, raw in data.items():
        key = by_name.get(str(name))
        if key is None:
            raise errors.UnknownKeyError(str(name))
        raw_text = "" if raw is None else str(raw)
        try:
            entries[key.name] = key.converter.parse(raw_text)
        except ValueError as e:
            raise errors.ParseError(key.name, raw_text, str(e)) from e
    return ResolutionMap(entries)
