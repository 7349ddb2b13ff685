"""Tests for resolution maps and their persistence."""

import pytest as _pytest

import stagekey.algebra as algebra
import stagekey.converters as converters
import stagekey.errors as errors
import stagekey.keys as keys
import stagekey.resolution as resolution


@_pytest.fixture
def name() -> keys.Key[str]:
    return keys.create("name", converters.STRING, doc="Program name.", default="main")


class TestResolutionMap:
    """Tests for the ResolutionMap type."""

    def test_empty_has_nothing(self, port: keys.Key[int]) -> None:
        assert len(resolution.EMPTY) == 0
        assert not resolution.EMPTY.has(port)

    def test_with_entries_is_persistent(self, port: keys.Key[int]) -> None:
        resolved = resolution.EMPTY.with_entries({port: 9090})
        assert resolved.has(port)
        assert resolved["port"] == 9090
        assert not resolution.EMPTY.has(port)

    def test_merge_prefers_other(self, port: keys.Key[int], name: keys.Key[str]) -> None:
        base = resolution.EMPTY.with_entries({port: 1, name: "a"})
        top = resolution.EMPTY.with_entries({port: 2})
        merged = base.merge(top)
        assert dict(merged) == {"port": 2, "name": "a"}

    def test_names_are_sorted(self, port: keys.Key[int], name: keys.Key[str]) -> None:
        resolved = resolution.EMPTY.with_entries({port: 1, name: "x"})
        assert resolved.names() == ["name", "port"]


class TestQueries:
    """Tests for get, eval_, is_resolved and peek."""

    def test_get_falls_back_to_default(self, port: keys.Key[int]) -> None:
        assert resolution.get(resolution.EMPTY, port) == 8080

    def test_get_returns_explicit_value(self, port: keys.Key[int]) -> None:
        assert resolution.get(resolution.EMPTY.with_entries({port: 1}), port) == 1

    def test_explicit_value_equal_to_default_counts(self, port: keys.Key[int]) -> None:
        resolved = resolution.EMPTY.with_entries({port: 8080})
        assert resolution.is_resolved(resolved, keys.value(port))

    def test_eval_uses_defaults(self, port: keys.Key[int], name: keys.Key[str]) -> None:
        v = algebra.app(algebra.map_(lambda n: lambda p: f"{n}@{p}", keys.value(name)), keys.value(port))
        resolved = resolution.EMPTY.with_entries({port: 1})
        assert resolution.eval_(resolved, v) == "main@1"

    def test_is_resolved_needs_every_dep(self, port: keys.Key[int], name: keys.Key[str]) -> None:
        v = algebra.with_deps([name], keys.value(port))
        partial = resolution.EMPTY.with_entries({port: 1})
        assert not resolution.is_resolved(partial, v)
        assert resolution.is_resolved(partial.with_entries({name: "x"}), v)

    def test_pure_value_is_always_resolved(self) -> None:
        assert resolution.is_resolved(resolution.EMPTY, algebra.pure(1))
        assert resolution.peek(resolution.EMPTY, algebra.pure(1)) == 1

    def test_peek_returns_none_when_unresolved(self, port: keys.Key[int]) -> None:
        assert resolution.peek(resolution.EMPTY, keys.value(port)) is None

    def test_peek_returns_value_when_resolved(self, port: keys.Key[int]) -> None:
        resolved = resolution.EMPTY.with_entries({port: 9090})
        assert resolution.peek(resolved, keys.value(port)) == 9090

    def test_format_map(self, port: keys.Key[int], name: keys.Key[str]) -> None:
        resolved = resolution.EMPTY.with_entries({port: 9090})
        assert resolution.format_map(resolved, [port, name]) == "name=main, port=9090"


class TestPersistence:
    """Tests for dump_map and load_map."""

    def test_dump_writes_only_explicit_entries(self, port: keys.Key[int], name: keys.Key[str]) -> None:
        resolved = resolution.EMPTY.with_entries({port: 9090})
        assert resolution.dump_map(resolved, [port, name]) == "port: '9090'\n"

    def test_dump_then_load(self, port: keys.Key[int], name: keys.Key[str]) -> None:
        tags = keys.create("tags", converters.list_of(converters.STRING), doc="Tags.", default=[])
        resolved = resolution.EMPTY.with_entries({port: 9090, name: "", tags: ["a,b", "c"]})
        loaded = resolution.load_map(resolution.dump_map(resolved, [port, name, tags]), [port, name, tags])
        assert dict(loaded) == {"port": 9090, "name": "", "tags": ["a,b", "c"]}

    def test_load_accepts_unquoted_scalars(self, port: keys.Key[int]) -> None:
        assert dict(resolution.load_map("port: 9090\n", [port])) == {"port": 9090}

    def test_load_empty_document(self, port: keys.Key[int]) -> None:
        assert resolution.load_map("", [port]) is resolution.EMPTY

    def test_load_rejects_unknown_key(self, port: keys.Key[int]) -> None:
        with _pytest.raises(errors.UnknownKeyError, match="Unknown key 'colour'"):
            resolution.load_map("colour: red\n", [port])

    def test_load_rejects_bad_value(self, port: keys.Key[int]) -> None:
        with _pytest.raises(errors.ParseError) as exc_info:
            resolution.load_map("port: fast\n", [port])
        assert exc_info.value.key_name == "port"
        assert exc_info.value.raw == "fast"

    def test_load_rejects_non_mapping(self, port: keys.Key[int]) -> None:
        with _pytest.raises(errors.ParseError, match="expected a mapping"):
            resolution.load_map("- port\n", [port])

    def test_load_rejects_invalid_yaml(self, port: keys.Key[int]) -> None:
        with _pytest.raises(errors.ParseError, match="invalid YAML"):
            resolution.load_map("port: [unclosed\n", [port])
