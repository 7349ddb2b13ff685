"""Tests for key creation and the key registry."""

import pytest as _pytest

import stagekey.converters as converters
import stagekey.errors as errors
import stagekey.keys as keys


class TestCreate:
    """Tests for keys.create and keys.flag."""

    def test_create_registers_in_default_registry(self, fresh_registry: keys.KeyRegistry) -> None:
        port = keys.create("port", converters.INT, doc="Port.", default=8080)
        assert fresh_registry.get("port") is port
        assert port.stage is keys.Stage.BOTH

    def test_create_records_arg_info(self) -> None:
        key = keys.create(
            "log-level",
            converters.STRING,
            doc="Log level.",
            default="info",
            stage=keys.Stage.RUN,
            env="APP_LOG_LEVEL",
            docv="LEVEL",
            docs="LOGGING",
            aliases=["l"],
        )
        assert key.info.names == ("log-level", "l")
        assert key.info.env == "APP_LOG_LEVEL"
        assert key.info.docv == "LEVEL"
        assert key.doc == "Log level."

    def test_flag_defaults_to_false(self) -> None:
        debug = keys.flag("debug", doc="Debug output.")
        assert debug.default is False
        assert debug.is_flag
        assert debug.converter is converters.BOOL

    def test_explicit_registry(self, fresh_registry: keys.KeyRegistry) -> None:
        other = keys.KeyRegistry()
        keys.create("port", converters.INT, doc="Port.", default=1, registry=other)
        assert "port" in other
        assert "port" not in fresh_registry

    @_pytest.mark.parametrize("name", ["", "-port", "port number", "_hidden", "a.b"])
    def test_invalid_names_are_rejected(self, name: str) -> None:
        with _pytest.raises(ValueError, match="Invalid key name"):
            keys.create(name, converters.INT, doc="", default=0)

    @_pytest.mark.parametrize("name", ["h", "help"])
    def test_help_names_are_reserved(self, fresh_registry: keys.KeyRegistry, name: str) -> None:
        with _pytest.raises(ValueError, match="reserved for help"):
            keys.create(name, converters.INT, doc="", default=0)
        assert name not in fresh_registry

    @_pytest.mark.parametrize("alias", ["h", "help"])
    def test_help_aliases_are_reserved(self, fresh_registry: keys.KeyRegistry, alias: str) -> None:
        with _pytest.raises(ValueError, match="reserved for help"):
            keys.create("host", converters.STRING, doc="", default="", aliases=[alias])
        assert "host" not in fresh_registry

    def test_similar_names_are_allowed(self) -> None:
        assert keys.create("helper", converters.INT, doc="", default=0).name == "helper"
        assert keys.create("H", converters.INT, doc="", default=0).info.option_names() == ["-H"]


class TestKeyIdentity:
    """Keys compare and hash by name."""

    def test_keys_compare_by_name(self, port: keys.Key[int]) -> None:
        other_registry = keys.KeyRegistry()
        twin = keys.create("port", converters.INT, doc="", default=1, registry=other_registry)
        assert twin == port
        assert len({port, twin}) == 1

    def test_to_dict(self, fast: keys.Key[bool]) -> None:
        data = fast.to_dict()
        assert data["name"] == "fast"
        assert data["stage"] == "configure"
        assert data["default"] == "false"
        assert data["proxy"] is True
        assert data["setters"] == ["buffer_size"]
        assert data["info"]["doc"] == "Tune for throughput."


class TestRegistry:
    """Tests for KeyRegistry."""

    def test_duplicate_name_is_rejected(self, port: keys.Key[int]) -> None:
        with _pytest.raises(errors.DuplicateKeyError, match="'port' is already registered"):
            keys.create("port", converters.STRING, doc="", default="")

    def test_identifier_clash_is_rejected(self) -> None:
        keys.create("buffer-size", converters.INT, doc="", default=0)
        with _pytest.raises(errors.DuplicateKeyError) as exc_info:
            keys.create("buffer_size", converters.INT, doc="", default=0)
        assert exc_info.value.existing == "buffer-size"
        assert "same identifier" in str(exc_info.value)

    def test_duplicate_error_is_a_value_error(self, port: keys.Key[int]) -> None:
        with _pytest.raises(ValueError):
            keys.flag("port", doc="")

    def test_list_keys_keeps_registration_order(self, fresh_registry: keys.KeyRegistry) -> None:
        keys.create("zeta", converters.INT, doc="", default=0)
        keys.create("alpha", converters.INT, doc="", default=0)
        assert [k.name for k in fresh_registry.list_keys()] == ["zeta", "alpha"]
        assert fresh_registry.names() == ["alpha", "zeta"]

    def test_get_or_raise(self, fresh_registry: keys.KeyRegistry, port: keys.Key[int]) -> None:
        assert fresh_registry.get_or_raise("port") is port
        with _pytest.raises(errors.UnknownKeyError, match="Unknown key 'nope'"):
            fresh_registry.get_or_raise("nope")

    def test_unknown_key_error_is_a_key_error(self, fresh_registry: keys.KeyRegistry) -> None:
        with _pytest.raises(KeyError):
            fresh_registry.get_or_raise("nope")

    def test_get_missing_returns_none(self, fresh_registry: keys.KeyRegistry) -> None:
        assert fresh_registry.get("nope") is None

    def test_set_default_registry_returns_previous(self, fresh_registry: keys.KeyRegistry) -> None:
        replacement = keys.KeyRegistry()
        previous = keys.set_default_registry(replacement)
        try:
            assert previous is fresh_registry
            assert keys.get_default_registry() is replacement
        finally:
            keys.set_default_registry(previous)


class TestStages:
    """Tests for stage predicates and filtering."""

    def test_predicates(self) -> None:
        c = keys.create("c", converters.INT, doc="", default=0, stage=keys.Stage.CONFIGURE)
        r = keys.create("r", converters.INT, doc="", default=0, stage=keys.Stage.RUN)
        b = keys.create("b", converters.INT, doc="", default=0)
        assert (keys.is_configure(c), keys.is_runtime(c)) == (True, False)
        assert (keys.is_configure(r), keys.is_runtime(r)) == (False, True)
        assert (keys.is_configure(b), keys.is_runtime(b)) == (True, True)

    def test_filter_stage(self) -> None:
        c = keys.create("c", converters.INT, doc="", default=0, stage=keys.Stage.CONFIGURE)
        r = keys.create("r", converters.INT, doc="", default=0, stage=keys.Stage.RUN)
        b = keys.create("b", converters.INT, doc="", default=0)
        every = [c, r, b]
        assert keys.filter_stage(keys.Stage.CONFIGURE, every) == frozenset({c, b})
        assert keys.filter_stage(keys.Stage.RUN, every) == frozenset({r, b})
        assert keys.filter_stage(keys.Stage.BOTH, every) == frozenset(every)


class TestProxies:
    """Tests for proxy key construction."""

    def test_proxy_is_configure_flag(self, fast: keys.Key[bool]) -> None:
        assert fast.stage is keys.Stage.CONFIGURE
        assert fast.is_flag
        assert fast.is_proxy

    def test_setters_lists_targets(self, fast: keys.Key[bool], buffer_size: keys.Key[int]) -> None:
        assert keys.setters(fast) == frozenset({buffer_size})

    def test_plain_key_has_no_setters(self, port: keys.Key[int]) -> None:
        assert keys.setters(port) == frozenset()
        assert not port.is_proxy

    def test_setters_add_is_immutable(self, port: keys.Key[int]) -> None:
        empty = keys.Setters()
        one = empty.add(port, lambda _on: 1)
        assert len(empty) == 0
        assert len(one) == 1
