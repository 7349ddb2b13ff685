"""
stagekey - staged, dependency-tracked configuration keys.

Keys are declared once, combined into values that know which keys they
depend on, resolved from the command line at configure time and/or at run
time, and emitted as Python source for the generated program.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("stagekey")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)

from stagekey.algebra import Value, app, branch, deps, if_, map_, pipe, pure, with_deps  # noqa: E402
from stagekey.converters import BOOL, FLOAT, INT, STRING, Converter, list_of, option_of  # noqa: E402
from stagekey.emitter import (  # noqa: E402
    Declaration,
    DeclarationKind,
    binding_name,
    declare,
    emit,
    emit_call,
    render_module,
)
from stagekey.errors import (  # noqa: E402
    DuplicateKeyError,
    ParseError,
    StagekeyError,
    StageMismatchError,
    UnknownKeyError,
)
from stagekey.keys import (  # noqa: E402
    Key,
    KeyRegistry,
    Setters,
    Stage,
    create,
    filter_stage,
    flag,
    is_configure,
    is_runtime,
    proxy,
    setters,
    value,
)
from stagekey.resolution import ResolutionMap, eval_, get, is_resolved, peek  # noqa: E402
from stagekey.resolver import Term, resolve, term, term_value  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "BOOL",
    "FLOAT",
    "INT",
    "STRING",
    "Converter",
    "Declaration",
    "DeclarationKind",
    "DuplicateKeyError",
    "Key",
    "KeyRegistry",
    "ParseError",
    "ResolutionMap",
    "Setters",
    "Stage",
    "StageMismatchError",
    "StagekeyError",
    "Term",
    "UnknownKeyError",
    "Value",
    "app",
    "binding_name",
    "branch",
    "create",
    "declare",
    "deps",
    "emit",
    "emit_call",
    "eval_",
    "filter_stage",
    "flag",
    "get",
    "if_",
    "is_configure",
    "is_resolved",
    "is_runtime",
    "list_of",
    "map_",
    "option_of",
    "peek",
    "pipe",
    "proxy",
    "pure",
    "render_module",
    "resolve",
    "setters",
    "term",
    "term_value",
    "value",
    "with_deps",
]
