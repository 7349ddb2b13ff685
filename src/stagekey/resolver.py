"""
Stage resolver: turn a set of keys into a command-line parser.

`term(keys, stage=...)` builds one click option per key that can be set at
`stage` and returns a `Term`; `Term.parse(argv)` parses an argv-like list
into a `ResolutionMap` holding the values that were given explicitly.

Parsing order for a configure-stage term:

1. Options and environment variables are parsed by click.
2. Every enabled proxy, in registration order, applies its setters. A
   setter result is entered for its target unless the target was given
   explicitly, so user input beats proxy-derived values and later proxies
   beat earlier ones. Entries loaded from a saved map count as explicit.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import typing as _typing

import click as _click
import click.core as _click_core

import stagekey.algebra as algebra
import stagekey.converters as converters
import stagekey.errors as errors
import stagekey.info as info
import stagekey.keys as keys
import stagekey.resolution as resolution

_logger = _logging.getLogger(__name__)

T = _typing.TypeVar("T")

_EXPLICIT_SOURCES = frozenset(
    {
        _click_core.ParameterSource.COMMANDLINE,
        _click_core.ParameterSource.ENVIRONMENT,
    }
)


class _BadKeyValue(_click.BadParameter):
    """BadParameter that remembers the raw text."""

    def __init__(self, message: str, raw: str, **kwargs: _typing.Any) -> None:
        super().__init__(message, **kwargs)
        self.raw = raw


class ConverterParamType(_click.ParamType):
    """click parameter type backed by a stagekey converter."""

    def __init__(self, converter: converters.Converter[_typing.Any]) -> None:
        self.converter = converter
        self.name = converter.docv.lower()

    def convert(
        self,
        value: _typing.Any,
        param: _click.Parameter | None,
        ctx: _click.Context | None,
    ) -> _typing.Any:
        if not isinstance(value, str):
            return value
        try:
            return self.converter.parse(value)
        except ValueError as e:
            raise _BadKeyValue(str(e), value, ctx=ctx, param=param) from e


def env_var(key: keys.Key[_typing.Any], env_prefix: str | None = None) -> str | None:
    """The environment variable for `key`: declared, or derived from `env_prefix`."""
    if key.info.env:
        return key.info.env
    if env_prefix:
        return f"{env_prefix}{info.identifier(key.name).upper()}"
    return None


def build_option(
    dest: str,
    arg_info: info.ArgInfo,
    converter: converters.Converter[_typing.Any],
    *,
    default_text: str,
    is_flag: bool = False,
    env: str | None = None,
) -> _click.Option:
    """
    Build the click option for one argument.

    The option's click default is left unset (False for flags) so that the
    parameter source tells explicit input apart from defaults.
    """
    shown = arg_info.model_copy(update={"env": env}) if env != arg_info.env else arg_info
    decls = [dest, *arg_info.option_names()]
    help_text = shown.help_text(default_text)
    if is_flag:
        return _click.Option(decls, is_flag=True, default=False, envvar=env, help=help_text)
    return _click.Option(
        decls,
        type=ConverterParamType(converter),
        default=None,
        envvar=env,
        metavar=arg_info.docv or converter.docv,
        help=help_text,
    )


def make_context(
    command: _click.Command,
    prog: str,
    argv: _abc.Sequence[str],
    names: _abc.Mapping[str, str],
) -> _click.Context:
    """
    Run click's parser over `argv`, translating click errors.

    Args:
        command: Command holding one option per key.
        prog: Program name used in messages.
        argv: Arguments to parse.
        names: Option destination to key name, for error messages.

    Raises:
        ParseError: For malformed values, unknown options or stray arguments.
    """

    def key_name(param: _click.Parameter | None) -> str:
        if param is None or param.name is None:
            return "<command line>"
        return names.get(param.name, param.name)

    try:
        return command.make_context(prog, list(argv))
    except _BadKeyValue as e:
        raise errors.ParseError(key_name(e.param), e.raw, e.message) from e
    except _click.BadParameter as e:
        raise errors.ParseError(key_name(e.param), None, e.message) from e
    except _click.NoSuchOption as e:
        raise errors.ParseError(e.option_name, None, "unknown option") from e
    except _click.BadOptionUsage as e:
        # e.g. an option given without its value
        owner = next((p for p in command.params if e.option_name in p.opts), None)
        name = key_name(owner) if owner is not None else e.option_name
        raise errors.ParseError(name, None, e.message) from e
    except _click.UsageError as e:
        raise errors.ParseError("<command line>", None, e.format_message()) from e


def _stage_keys(
    key_set: _abc.Iterable[keys.Key[_typing.Any]], stage: keys.Stage
) -> frozenset[keys.Key[_typing.Any]]:
    """Keys to expose at `stage`, including the targets of included proxies."""
    selected = set(keys.filter_stage(stage, key_set))
    for key in list(selected):
        selected |= keys.filter_stage(stage, keys.setters(key))
    return frozenset(selected)


class Term(_typing.Generic[T]):
    """
    A command-line parser for a set of keys.

    `resolve(argv)` returns the resolution map; `parse(argv)` returns the
    term's result (the map itself for `term`, the evaluated value for
    `term_value`).
    """

    def __init__(
        self,
        key_set: _abc.Iterable[keys.Key[_typing.Any]],
        finish: _typing.Callable[[resolution.ResolutionMap], T],
        *,
        stage: keys.Stage = keys.Stage.BOTH,
        allow_unknown: bool = False,
        env_prefix: str | None = None,
        name: str = "configure",
    ) -> None:
        self.stage = stage
        self.allow_unknown = allow_unknown
        self.name = name
        self._finish = finish
        self._keys = sorted(_stage_keys(key_set, stage), key=lambda k: k.name)
        self._by_dest: dict[str, keys.Key[_typing.Any]] = {}
        params: list[_click.Parameter] = []
        for key in self._keys:
            dest = info.identifier(key.name)
            self._by_dest[dest] = key
            params.append(
                build_option(
                    dest,
                    key.info,
                    key.converter,
                    default_text=key.converter.serialize(key.default),
                    is_flag=key.is_flag,
                    env=env_var(key, env_prefix),
                )
            )
        context_settings: dict[str, _typing.Any] = {}
        if allow_unknown:
            context_settings = {"ignore_unknown_options": True, "allow_extra_args": True}
        self.command = _click.Command(
            name,
            params=params,
            add_help_option=False,
            context_settings=context_settings,
        )

    @property
    def key_list(self) -> list[keys.Key[_typing.Any]]:
        """Keys this term parses, sorted by name."""
        return list(self._keys)

    def help(self) -> str:
        """Rendered help text for the term's options."""
        ctx = _click.Context(self.command, info_name=self.name)
        return self.command.get_help(ctx)

    def _make_context(self, argv: _abc.Sequence[str]) -> _click.Context:
        names = {dest: key.name for dest, key in self._by_dest.items()}
        return make_context(self.command, self.name, argv, names)

    def resolve(
        self,
        argv: _abc.Sequence[str],
        *,
        loaded: resolution.ResolutionMap = resolution.EMPTY,
    ) -> resolution.ResolutionMap:
        """
        Parse `argv` into a resolution map.

        Args:
            argv: Arguments to parse.
            loaded: Explicit entries saved by an earlier run. They are kept
                in the result, beat proxy-derived values and lose to `argv`.

        Raises:
            ParseError: If a value is malformed or an option is unknown.
        """
        ctx = self._make_context(argv)
        if ctx.args:
            _logger.warning("Ignoring arguments not handled by %s: %s", self.name, " ".join(ctx.args))

        given: dict[keys.Key[_typing.Any], _typing.Any] = {}
        for dest, key in self._by_dest.items():
            if ctx.get_parameter_source(dest) in _EXPLICIT_SOURCES:
                given[key] = ctx.params[dest]

        # Targets outside this term's stage keep their defaults
        key_set = frozenset(self._keys)
        derived: dict[keys.Key[_typing.Any], _typing.Any] = {}
        proxies = sorted((k for k in self._keys if k.is_proxy), key=lambda k: k.serial)
        for proxy in proxies:
            enabled = given.get(proxy, loaded.find(proxy) if loaded.has(proxy) else proxy.default)
            if not enabled:
                continue
            for target, fn in proxy.setters:
                if target not in key_set:
                    continue
                if target in given or loaded.has(target):
                    _logger.debug("Proxy %s: %s given explicitly, not overridden", proxy.name, target.name)
                    continue
                derived_value = fn(True)
                if derived_value is not None:
                    _logger.debug("Proxy %s sets %s", proxy.name, target.name)
                    derived[target] = derived_value

        resolved = loaded.with_entries({**derived, **given})
        _logger.debug("Resolved %s stage: %s", self.stage.value, ", ".join(resolved.names()) or "(none)")
        return resolved

    def parse(self, argv: _abc.Sequence[str]) -> T:
        """Parse `argv` and return the term's result."""
        return self._finish(self.resolve(argv))


def _identity(resolved: resolution.ResolutionMap) -> resolution.ResolutionMap:
    return resolved


def term(
    key_set: _abc.Iterable[keys.Key[_typing.Any]],
    *,
    stage: keys.Stage = keys.Stage.BOTH,
    allow_unknown: bool = False,
    env_prefix: str | None = None,
) -> Term[resolution.ResolutionMap]:
    """A term that, when parsed, resolves the keys of `key_set` relevant to `stage`."""
    return Term(
        key_set,
        _identity,
        stage=stage,
        allow_unknown=allow_unknown,
        env_prefix=env_prefix,
    )


def term_value(
    v: algebra.Value[T],
    *,
    stage: keys.Stage = keys.Stage.BOTH,
    allow_unknown: bool = False,
    env_prefix: str | None = None,
) -> Term[T]:
    """`term(deps(v))`, returning the evaluated content of `v`."""
    return Term(
        v.deps,
        v.evaluate,
        stage=stage,
        allow_unknown=allow_unknown,
        env_prefix=env_prefix,
    )


def resolve(
    key_set: _abc.Iterable[keys.Key[_typing.Any]],
    argv: _abc.Sequence[str],
    *,
    stage: keys.Stage = keys.Stage.BOTH,
    allow_unknown: bool = False,
    env_prefix: str | None = None,
) -> resolution.ResolutionMap:
    """Shorthand for `term(key_set, stage=stage).resolve(argv)`."""
    return term(
        key_set, stage=stage, allow_unknown=allow_unknown, env_prefix=env_prefix
    ).resolve(argv)
