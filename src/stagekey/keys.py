"""
Configuration keys and the process-wide key registry.

Keys are named, typed, staged configuration slots:

    port = keys.create("port", converters.INT, doc="Listening port.", default=8080)
    debug = keys.flag("debug", doc="Enable debug output.", stage=keys.Stage.RUN)

Every key is registered in the default registry when it is created; names
are unique for the lifetime of the process. The registry is filled while
the application is being described and treated as read-only once
resolution starts. It is not guarded by a lock.

Proxies are configure-time flags that set other keys when enabled:

    fast = keys.proxy(
        "fast",
        doc="Tune for throughput.",
        setters=keys.Setters().add(buffer_size, lambda _on: 65536),
    )
"""

from __future__ import annotations

import enum as _enum
import itertools as _itertools
import logging as _logging
import re as _re
import typing as _typing

import stagekey.algebra as algebra
import stagekey.converters as converters
import stagekey.errors as errors
import stagekey.info as info

_logger = _logging.getLogger(__name__)

T = _typing.TypeVar("T")

_VALID_NAME = _re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")

# Help options of generated programs
_RESERVED_OPTIONS = frozenset({"-h", "--help"})

# Registration order across all registries, used to order proxies
_serials = _itertools.count()


class Stage(_enum.Enum):
    """
    When a key can be set.

    - CONFIGURE: set at configure time, baked into the generated program.
    - RUN: set only when the generated program runs.
    - BOTH: set at configure time and overridable at run time.
    """

    CONFIGURE = "configure"
    RUN = "run"
    BOTH = "both"


class Setters:
    """
    Ordered cascades from a proxy flag to other keys.

    Each entry is `(target, fn)`; when the proxy is enabled, `fn(True)` is
    computed and, unless it is None, becomes the target's value.
    Immutable: `add` returns a new instance.
    """

    __slots__ = ("_entries",)

    def __init__(
        self,
        entries: tuple[tuple[Key[_typing.Any], _typing.Callable[[bool], _typing.Any]], ...] = (),
    ) -> None:
        self._entries = entries

    def add(self, target: Key[T], fn: _typing.Callable[[bool], T | None]) -> Setters:
        """A new Setters that also sets `target` to `fn(flag)`."""
        return Setters(self._entries + ((target, fn),))

    def targets(self) -> frozenset[Key[_typing.Any]]:
        return frozenset(target for target, _fn in self._entries)

    def __iter__(
        self,
    ) -> _typing.Iterator[tuple[Key[_typing.Any], _typing.Callable[[bool], _typing.Any]]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class Key(_typing.Generic[T]):
    """
    A named, typed, staged configuration slot.

    Keys compare and hash by name. Use `create`, `flag` or `proxy` rather
    than instantiating directly, so the key is registered.
    """

    __slots__ = ("name", "info", "default", "converter", "stage", "is_flag", "setters", "serial")

    def __init__(
        self,
        name: str,
        arg_info: info.ArgInfo,
        default: T,
        converter: converters.Converter[T],
        stage: Stage,
        *,
        is_flag: bool = False,
        setters: Setters | None = None,
    ) -> None:
        self.name = name
        self.info = arg_info
        self.default = default
        self.converter = converter
        self.stage = stage
        self.is_flag = is_flag
        self.setters = setters or Setters()
        self.serial = next(_serials)

    @property
    def doc(self) -> str:
        return self.info.doc

    @property
    def is_proxy(self) -> bool:
        return len(self.setters) > 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"Key({self.name!r}, stage={self.stage.value})"

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "name": self.name,
            "stage": self.stage.value,
            "default": self.converter.serialize(self.default),
            "flag": self.is_flag,
            "proxy": self.is_proxy,
            "setters": sorted(k.name for k in self.setters.targets()),
            "info": self.info.to_dict(),
        }


class KeyRegistry:
    """
    Catalogue of keys by name.

    Rejects duplicate names, and names that would bind to the same
    generated identifier as an existing key.
    """

    def __init__(self) -> None:
        self._keys: dict[str, Key[_typing.Any]] = {}
        self._identifiers: dict[str, str] = {}

    def register(self, key: Key[_typing.Any]) -> None:
        """
        Register a key.

        Raises:
            DuplicateKeyError: If the name, or its identifier, is taken.
        """
        if key.name in self._keys:
            raise errors.DuplicateKeyError(key.name)
        ident = info.identifier(key.name)
        existing = self._identifiers.get(ident)
        if existing is not None:
            raise errors.DuplicateKeyError(key.name, existing)
        self._keys[key.name] = key
        self._identifiers[ident] = key.name
        _logger.debug("Registered key %s (stage=%s)", key.name, key.stage.value)

    def get(self, name: str) -> Key[_typing.Any] | None:
        return self._keys.get(name)

    def get_or_raise(self, name: str) -> Key[_typing.Any]:
        """
        Get a key by name.

        Raises:
            UnknownKeyError: If no key has that name.
        """
        key = self._keys.get(name)
        if key is None:
            raise errors.UnknownKeyError(name)
        return key

    def list_keys(self) -> list[Key[_typing.Any]]:
        """All keys, in registration order."""
        return list(self._keys.values())

    def names(self) -> list[str]:
        """Sorted key names."""
        return sorted(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, name: object) -> bool:
        return name in self._keys

    def __iter__(self) -> _typing.Iterator[Key[_typing.Any]]:
        return iter(self.list_keys())


# Global default registry
_default_registry: KeyRegistry | None = None


def get_default_registry() -> KeyRegistry:
    """The process-wide registry, created on first use."""
    global _default_registry
    if _default_registry is None:
        _default_registry = KeyRegistry()
    return _default_registry


def set_default_registry(registry: KeyRegistry | None) -> KeyRegistry | None:
    """
    Replace the process-wide registry.

    Passing None makes the next `get_default_registry` call start afresh.
    Returns the previous registry.
    """
    global _default_registry
    previous = _default_registry
    _default_registry = registry
    return previous


def _check_name(name: str) -> None:
    if not _VALID_NAME.match(name):
        raise ValueError(
            f"Invalid key name {name!r}: use letters, digits, '-' and '_', "
            f"starting with a letter or digit"
        )
    if info.option_name(name) in _RESERVED_OPTIONS:
        raise ValueError(f"Invalid key name {name!r}: {info.option_name(name)} is reserved for help")


def _make(
    name: str,
    converter: converters.Converter[T],
    *,
    doc: str,
    default: T,
    stage: Stage,
    env: str | None,
    docv: str | None,
    docs: str | None,
    aliases: _typing.Sequence[str],
    is_flag: bool = False,
    setters: Setters | None = None,
    registry: KeyRegistry | None,
) -> Key[T]:
    _check_name(name)
    for alias in aliases:
        if info.option_name(alias) in _RESERVED_OPTIONS:
            raise ValueError(f"Invalid alias {alias!r} for key {name!r}: reserved for help")
    arg_info = info.ArgInfo(
        names=(name, *aliases),
        doc=doc,
        docv=docv,
        docs=docs,
        env=env,
    )
    key = Key(name, arg_info, default, converter, stage, is_flag=is_flag, setters=setters)
    (registry or get_default_registry()).register(key)
    return key


def create(
    name: str,
    converter: converters.Converter[T],
    *,
    doc: str,
    default: T,
    stage: Stage = Stage.BOTH,
    env: str | None = None,
    docv: str | None = None,
    docs: str | None = None,
    aliases: _typing.Sequence[str] = (),
    registry: KeyRegistry | None = None,
) -> Key[T]:
    """
    Create and register a key.

    Args:
        name: Unique key name; also the long option name.
        converter: How to parse, serialize and re-parse the value.
        doc: Help text.
        default: Value used when the key is not given.
        stage: When the key can be set (default: both stages).
        env: Environment variable consulted when the option is absent.
        docv: Metavariable shown in help.
        docs: Help section.
        aliases: Additional option names.
        registry: Registry to use instead of the default one.

    Raises:
        DuplicateKeyError: If the name is already registered.
    """
    return _make(
        name,
        converter,
        doc=doc,
        default=default,
        stage=stage,
        env=env,
        docv=docv,
        docs=docs,
        aliases=aliases,
        registry=registry,
    )


def flag(
    name: str,
    *,
    doc: str,
    stage: Stage = Stage.BOTH,
    env: str | None = None,
    docs: str | None = None,
    aliases: _typing.Sequence[str] = (),
    registry: KeyRegistry | None = None,
) -> Key[bool]:
    """Create a boolean key that takes no argument; passing it sets True."""
    return _make(
        name,
        converters.BOOL,
        doc=doc,
        default=False,
        stage=stage,
        env=env,
        docv=None,
        docs=docs,
        aliases=aliases,
        is_flag=True,
        registry=registry,
    )


def proxy(
    name: str,
    *,
    doc: str,
    setters: Setters,
    docs: str | None = None,
    registry: KeyRegistry | None = None,
) -> Key[bool]:
    """
    Create a configure-time flag that sets other keys when enabled.

    Explicit command-line values for the targets still win over the values
    the proxy derives.
    """
    return _make(
        name,
        converters.BOOL,
        doc=doc,
        default=False,
        stage=Stage.CONFIGURE,
        env=None,
        docv=None,
        docs=docs,
        aliases=(),
        is_flag=True,
        setters=setters,
        registry=registry,
    )


def value(key: Key[T]) -> algebra.Value[T]:
    """The value that depends on `key` and takes its content."""
    return algebra.Value(frozenset((key,)), lambda resolved: resolved.find(key))


def is_runtime(key: Key[_typing.Any]) -> bool:
    """True if `key` can be set when the generated program runs."""
    return key.stage in (Stage.RUN, Stage.BOTH)


def is_configure(key: Key[_typing.Any]) -> bool:
    """True if `key` can be set at configure time."""
    return key.stage in (Stage.CONFIGURE, Stage.BOTH)


def filter_stage(
    stage: Stage, keys: _typing.Iterable[Key[_typing.Any]]
) -> frozenset[Key[_typing.Any]]:
    """The keys of `keys` that can be set at `stage` (BOTH keeps everything)."""
    if stage is Stage.CONFIGURE:
        return frozenset(k for k in keys if is_configure(k))
    if stage is Stage.RUN:
        return frozenset(k for k in keys if is_runtime(k))
    return frozenset(keys)


def setters(key: Key[_typing.Any]) -> frozenset[Key[_typing.Any]]:
    """The keys `key` sets when enabled (empty unless `key` is a proxy)."""
    return key.setters.targets()
