"""
Runtime support for generated key modules.

Generated modules import this module and bind every key to an accessor:

    port = _runtime.key(_stagekey_converters.INT, 'port', default='9090', flag=False, doc='...')
    name = _runtime.constant(_stagekey_converters.STRING, 'unikernel')

The program calls `parse()` once at startup; afterwards `port()` returns
the command-line value, or the default baked in at configure time.
Accessors can be called before `parse()` and then return their defaults.
"""

from __future__ import annotations

import collections.abc as _abc
import sys as _sys
import typing as _typing

import click as _click
import click.core as _click_core

import stagekey.converters as converters
import stagekey.errors as errors
import stagekey.info as info
import stagekey.resolver as resolver

T = _typing.TypeVar("T")

_UNSET: _typing.Any = object()


class Constant(_typing.Generic[T]):
    """Accessor for a value fixed at configure time."""

    __slots__ = ("_value",)

    def __init__(self, converter: converters.Converter[T], text: str) -> None:
        self._value = converter.parse(text)

    def __call__(self) -> T:
        return self._value


class RuntimeKey(_typing.Generic[T]):
    """Accessor for a value the program reads from its own command line."""

    def __init__(
        self,
        converter: converters.Converter[T],
        arg_info: info.ArgInfo,
        default_text: str,
        *,
        is_flag: bool = False,
    ) -> None:
        self.converter = converter
        self.info = arg_info
        self.default_text = default_text
        self.default = converter.parse(default_text)
        self.is_flag = is_flag
        self._value: _typing.Any = _UNSET

    @property
    def name(self) -> str:
        return self.info.primary

    @property
    def is_set(self) -> bool:
        """True if the value came from the command line or environment."""
        return self._value is not _UNSET

    def set(self, value: T) -> None:
        self._value = value

    def clear(self) -> None:
        self._value = _UNSET

    def __call__(self) -> T:
        if self._value is _UNSET:
            return _typing.cast(T, self.default)
        return _typing.cast(T, self._value)


# Runtime keys declared by imported generated modules, by name
_runtime_keys: dict[str, RuntimeKey[_typing.Any]] = {}


def constant(converter: converters.Converter[T], text: str) -> Constant[T]:
    """Bind a configure-time literal."""
    return Constant(converter, text)


def key(
    converter: converters.Converter[T],
    name: str,
    *,
    default: str,
    flag: bool = False,
    doc: str = "",
    aliases: _abc.Sequence[str] = (),
    docv: str | None = None,
    docs: str | None = None,
    env: str | None = None,
) -> RuntimeKey[T]:
    """
    Declare a key parsed by the generated program.

    Raises:
        DuplicateKeyError: If a runtime key with this name already exists.
    """
    if name in _runtime_keys:
        raise errors.DuplicateKeyError(name)
    arg_info = info.ArgInfo(names=(name, *aliases), doc=doc, docv=docv, docs=docs, env=env)
    runtime_key = RuntimeKey(converter, arg_info, default, is_flag=flag)
    _runtime_keys[name] = runtime_key
    return runtime_key


def runtime_keys() -> list[RuntimeKey[_typing.Any]]:
    """Declared runtime keys, sorted by name."""
    return [_runtime_keys[n] for n in sorted(_runtime_keys)]


def command(prog: str = "main", *, allow_unknown: bool = False) -> _click.Command:
    """The click command parsing every declared runtime key."""
    params: list[_click.Parameter] = [
        resolver.build_option(
            info.identifier(k.name),
            k.info,
            k.converter,
            default_text=k.default_text,
            is_flag=k.is_flag,
            env=k.info.env,
        )
        for k in runtime_keys()
    ]
    context_settings: dict[str, _typing.Any] = {"help_option_names": ["-h", "--help"]}
    if allow_unknown:
        context_settings.update(ignore_unknown_options=True, allow_extra_args=True)
    return _click.Command(prog, params=params, context_settings=context_settings)


def parse(
    argv: _abc.Sequence[str] | None = None,
    *,
    prog: str | None = None,
    allow_unknown: bool = False,
) -> dict[str, _typing.Any]:
    """
    Parse the program's arguments into the declared runtime keys.

    Args:
        argv: Arguments to parse (default: sys.argv[1:]).
        prog: Program name for help output.
        allow_unknown: Ignore options no runtime key claims.

    Returns:
        Mapping of key name to its value after parsing.

    Raises:
        ParseError: If an argument is malformed or unknown.
        SystemExit: After printing help for -h/--help.
    """
    if argv is None:
        argv = _sys.argv[1:]
    prog = prog or _sys.argv[0]
    cmd = command(prog, allow_unknown=allow_unknown)
    names = {info.identifier(k.name): k.name for k in runtime_keys()}
    try:
        ctx = resolver.make_context(cmd, prog, argv, names)
    except _click.exceptions.Exit as e:
        raise SystemExit(e.exit_code) from None

    for dest, name in names.items():
        runtime_key = _runtime_keys[name]
        source = ctx.get_parameter_source(dest)
        if source in (_click_core.ParameterSource.COMMANDLINE, _click_core.ParameterSource.ENVIRONMENT):
            runtime_key.set(ctx.params[dest])
        else:
            runtime_key.clear()
    return {k.name: k() for k in runtime_keys()}


def reset() -> None:
    """Forget all declared runtime keys."""
    _runtime_keys.clear()
