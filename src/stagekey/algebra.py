"""
Values computed from configuration keys.

A `Value` is a computation over a resolution map together with the set of
keys it reads. Values are only built through the combinators in this
module (and `stagekey.keys.value`), so the dependency set is always the
exact union of the keys every sub-computation can read:

    port = keys.value(port_key)
    url = algebra.map_(lambda p: f"http://localhost:{p}", port)
    algebra.deps(url)  # {port_key}

Dependency sets are what the resolver turns into command-line options, so
both branches of `branch` count even though only one of them runs.
"""

from __future__ import annotations

import typing as _typing

import stagekey.resolution as resolution

if _typing.TYPE_CHECKING:
    import stagekey.keys as _keys

T = _typing.TypeVar("T")
U = _typing.TypeVar("U")

KeySet: _typing.TypeAlias = "frozenset[_keys.Key[_typing.Any]]"

_EMPTY: frozenset[_typing.Any] = frozenset()


class Value(_typing.Generic[T]):
    """
    A value available once its dependency keys are resolved.

    Do not construct directly; use `pure`, `app`, `map_`, `branch`,
    `with_deps` or `stagekey.keys.value`.
    """

    __slots__ = ("_deps", "_fn")

    def __init__(
        self,
        deps: KeySet,
        fn: _typing.Callable[[resolution.ResolutionMap], T],
    ) -> None:
        self._deps = frozenset(deps)
        self._fn = fn

    @property
    def deps(self) -> KeySet:
        """Keys this value reads, directly or transitively."""
        return self._deps

    def evaluate(self, resolved: resolution.ResolutionMap) -> T:
        """Compute the value against `resolved`, falling back to defaults."""
        return self._fn(resolved)

    def __matmul__(self, other: Value[_typing.Any]) -> Value[_typing.Any]:
        """`f @ v` is `app(f, v)`."""
        return app(self, other)  # type: ignore[arg-type]

    def __repr__(self) -> str:
        return f"Value(deps=[{format_deps(self)}])"


def pure(x: T) -> Value[T]:
    """A value with no dependencies."""
    return Value(_EMPTY, lambda _resolved: x)


def app(f: Value[_typing.Callable[[T], U]], v: Value[T]) -> Value[U]:
    """Apply the function computed by `f` to the value computed by `v`."""
    return Value(f.deps | v.deps, lambda resolved: f.evaluate(resolved)(v.evaluate(resolved)))


def map_(fn: _typing.Callable[[T], U], v: Value[T]) -> Value[U]:
    """`map_(fn, v)` is `app(pure(fn), v)`."""
    return Value(v.deps, lambda resolved: fn(v.evaluate(resolved)))


def pipe(v: Value[T], fn: _typing.Callable[[T], U]) -> Value[U]:
    """`pipe(v, fn)` is `map_(fn, v)`."""
    return map_(fn, v)


def _lift(x: Value[T] | T) -> Value[T]:
    return x if isinstance(x, Value) else pure(x)


def branch(
    cond: Value[bool],
    then: Value[T] | T,
    else_: Value[T] | T,
) -> Value[T]:
    """
    Choose between two values depending on `cond`.

    Plain Python values are lifted with `pure`. The result depends on the
    keys of `cond` and of both branches.
    """
    then_v = _lift(then)
    else_v = _lift(else_)

    def evaluate(resolved: resolution.ResolutionMap) -> T:
        if cond.evaluate(resolved):
            return then_v.evaluate(resolved)
        return else_v.evaluate(resolved)

    return Value(cond.deps | then_v.deps | else_v.deps, evaluate)


def if_(cond: Value[bool], x: T, y: T) -> Value[T]:
    """`if_(cond, x, y)` is `pipe(cond, lambda b: x if b else y)`."""
    return pipe(cond, lambda b: x if b else y)


def with_deps(keys: _typing.Iterable[_keys.Key[_typing.Any]], v: Value[T]) -> Value[T]:
    """`v` with extra dependencies; evaluation is unchanged."""
    return Value(v.deps | frozenset(keys), v.evaluate)


def deps(v: Value[_typing.Any]) -> KeySet:
    """The dependency set of `v`."""
    return v.deps


def default(v: Value[T]) -> T:
    """Evaluate `v` using only default values."""
    return v.evaluate(resolution.EMPTY)


def format_deps(v: Value[_typing.Any]) -> str:
    """Comma-separated, sorted names of the dependencies of `v`."""
    return ", ".join(sorted(k.name for k in v.deps))
