"""
Code emission: persist resolved keys as Python source.

After configure-time resolution, each key becomes one declaration in a
generated module. Declarations are built as `Declaration` values first and
only then formatted, so the resolution logic never deals with syntax.

- CONFIGURE keys are bound to a literal: the configure-time value,
  written with the converter's `serialize` and parsed back on import.
- RUN keys are bound to a runtime key that the generated program parses
  from its own command line, falling back to the key's default.
- BOTH keys are bound to a runtime key whose fallback is the
  configure-time value: fixed at configure time, still overridable when
  the program runs. `kind=DeclarationKind.LITERAL` pins them instead.

Every binding is a zero-argument accessor; `emit_call` gives the
expression reading it.
"""

from __future__ import annotations

import collections.abc as _abc
import enum as _enum
import logging as _logging
import re as _re
import typing as _typing

import pydantic as _pydantic

import stagekey.errors as errors
import stagekey.info as info
import stagekey.keys as keys
import stagekey.resolution as resolution

_logger = _logging.getLogger(__name__)

# Default name of the generated module
MODULE_NAME = "key_gen"

# Default import path of the runtime support module
RUNTIME_MODULE = "stagekey.runtime"

_RUNTIME_ALIAS = "_runtime"

_DOTTED_NAME = _re.compile(r"[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)+")


class DeclarationKind(_enum.Enum):
    """How a declaration obtains its value."""

    LITERAL = "literal"
    RUNTIME = "runtime"


class Declaration(_pydantic.BaseModel):
    """A key binding in generated code, before formatting."""

    model_config = _pydantic.ConfigDict(frozen=True)

    name: str
    """Identifier the declaration binds."""

    key_name: str
    """Name of the key being declared."""

    kind: DeclarationKind

    payload: str
    """Serialized value: the literal, or the runtime fallback."""

    runtime_name: str
    """Expression naming the converter in generated code."""

    arg_info: info.ArgInfo

    is_flag: bool = False


def binding_name(key: keys.Key[_typing.Any]) -> str:
    """The identifier the generated declaration for `key` binds."""
    return info.identifier(key.name)


def emit_call(key: keys.Key[_typing.Any]) -> str:
    """Python expression reading the bound value of `key`."""
    return f"{binding_name(key)}()"


def declare(
    resolved: resolution.ResolutionMap,
    key: keys.Key[_typing.Any],
    *,
    kind: DeclarationKind | None = None,
) -> Declaration:
    """
    Build the declaration for `key` from a configure-time resolution map.

    Args:
        resolved: The configure-stage resolution map.
        key: The key to declare.
        kind: Force a declaration kind. Only BOTH keys accept either kind.

    Raises:
        StageMismatchError: If `kind` is not available for the key's stage.
    """
    natural = DeclarationKind.LITERAL if key.stage is keys.Stage.CONFIGURE else DeclarationKind.RUNTIME
    if kind is None:
        kind = natural
    elif kind is DeclarationKind.LITERAL and key.stage is keys.Stage.RUN:
        raise errors.StageMismatchError(
            f"Key '{key.name}' is only available at run time and cannot be bound to a literal"
        )
    elif kind is DeclarationKind.RUNTIME and key.stage is keys.Stage.CONFIGURE:
        raise errors.StageMismatchError(
            f"Key '{key.name}' is only available at configure time and cannot be read at run time"
        )

    # RUN keys were never resolved at configure time; their fallback is the default
    current = key.default if key.stage is keys.Stage.RUN else resolution.get(resolved, key)
    _logger.debug("Declaring %s as %s", key.name, kind.value)
    return Declaration(
        name=binding_name(key),
        key_name=key.name,
        kind=kind,
        payload=key.converter.serialize(current),
        runtime_name=key.converter.runtime_name,
        arg_info=key.info,
        is_flag=key.is_flag,
    )


def format_declaration(decl: Declaration) -> str:
    """Python source for `decl`."""
    if decl.kind is DeclarationKind.LITERAL:
        return f"{decl.name} = {_RUNTIME_ALIAS}.constant({decl.runtime_name}, {decl.payload!r})\n"
    return (
        f"{decl.name} = {_RUNTIME_ALIAS}.key(\n"
        f"    {decl.runtime_name},\n"
        f"    {decl.key_name!r},\n"
        f"    default={decl.payload!r},\n"
        f"    flag={decl.is_flag!r},\n"
        f"    {decl.arg_info.emit()},\n"
        f")\n"
    )


def emit(
    resolved: resolution.ResolutionMap,
    key: keys.Key[_typing.Any],
    *,
    kind: DeclarationKind | None = None,
) -> str:
    """Python source defining `key`; see `declare`."""
    return format_declaration(declare(resolved, key, kind=kind))


def _module_aliases(declarations: _abc.Iterable[Declaration]) -> dict[str, str]:
    """
    Private import alias for every module the converters' runtime names use.

    Key bindings never start with `_` followed by a letter, so the aliases
    cannot be shadowed by a declaration.
    """
    modules = set()
    for decl in declarations:
        for dotted in _DOTTED_NAME.findall(decl.runtime_name):
            modules.add(dotted.rsplit(".", 1)[0])
    aliases: dict[str, str] = {}
    taken = {_RUNTIME_ALIAS}
    for module in sorted(modules):
        alias = "_" + module.replace(".", "_")
        base, n = alias, 1
        while alias in taken:
            alias = f"{base}_{n}"
            n += 1
        taken.add(alias)
        aliases[module] = alias
    return aliases


def _alias_runtime_name(runtime_name: str, aliases: _abc.Mapping[str, str]) -> str:
    """Rewrite `runtime_name` to reach its modules through `aliases`."""

    def replace(match: _re.Match[str]) -> str:
        module, attr = match.group(0).rsplit(".", 1)
        return f"{aliases[module]}.{attr}"

    return _DOTTED_NAME.sub(replace, runtime_name)


def render_module(
    resolved: resolution.ResolutionMap,
    key_set: _abc.Iterable[keys.Key[_typing.Any]],
    *,
    module_name: str = MODULE_NAME,
    runtime_module: str = RUNTIME_MODULE,
) -> str:
    """
    Render the complete generated module for `key_set`.

    Declarations are sorted by key name so the output is stable. Converter
    modules are imported under private aliases, so a key named like one of
    them (e.g. `stagekey`) does not shadow it.
    """
    declarations = [declare(resolved, k) for k in sorted(key_set, key=lambda k: k.name)]
    aliases = _module_aliases(declarations)
    lines = [
        f"# {module_name}: generated by stagekey. Do not edit.",
        f'"""Configuration keys ({len(declarations)} declared)."""',
        "",
    ]
    lines.extend(f"import {module} as {alias}" for module, alias in aliases.items())
    lines.append(f"import {runtime_module} as {_RUNTIME_ALIAS}")
    for decl in declarations:
        aliased = decl.model_copy(
            update={"runtime_name": _alias_runtime_name(decl.runtime_name, aliases)}
        )
        lines.extend(["", ""])
        lines.append(format_declaration(aliased).rstrip("\n"))
    names = ", ".join(repr(d.name) for d in declarations)
    lines.extend(["", ""])
    lines.append(f"__all__ = [{names}]")
    return "\n".join(lines) + "\n"
