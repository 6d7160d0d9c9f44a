"""Tests for FlatStorage addressing, reconstruction and binding."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from cfgbind import ConversionError, FlatStorage, Storage, TreeStorage, config_field


@dataclass
class App:
    name: str = ""
    debug: bool = False


@dataclass
class DB:
    host: str = ""
    port: int = 0
    max_conns: int = 0


@dataclass
class PoolCfg:
    name: str = ""
    max_conns: int = 0


@dataclass
class EnvConfig:
    app: App = field(default_factory=App)
    database: DB = field(default_factory=DB)
    pools: List[PoolCfg] = field(default_factory=list)
    servers: List[str] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)
    timeout: timedelta = timedelta(0)
    started: Optional[datetime] = None


@dataclass
class Defaulted:
    host: str = config_field(default="localhost", value="")
    port: int = config_field(default="8080", value=0)


@dataclass
class PluginCfg:
    type: str = ""
    options: Optional[Storage] = None


ENV = {
    "APP_NAME": "demo",
    "APP_DEBUG": "true",
    "DATABASE_HOST": "db",
    "DATABASE_PORT": "5432",
    "DATABASE_MAX_CONNS": "20",
    "POOLS_0_NAME": "primary",
    "POOLS_0_MAX_CONNS": "10",
    "POOLS_1_NAME": "replica",
    "POOLS_1_MAX_CONNS": "5",
    "SERVERS_0": "a",
    "SERVERS_1": "b",
    "LABELS_ENV": "prod",
    "LABELS_TEAM_NAME": "core",
    "TIMEOUT": "30s",
    "STARTED": "2023-01-01T00:00:00Z",
}

DOTTED = {
    "server.host": "localhost",
    "server.port": 8080,
    "servers[0].host": "a",
    "servers[1].host": "b",
    "ports[0]": 80,
    "ports[1]": 443,
}


@pytest.fixture
def env() -> FlatStorage:
    return FlatStorage(ENV, separator="_", index_format="_%d")


class TestConstruction:
    """Test suite for FlatStorage construction."""

    def test_properties(self, env: FlatStorage):
        """Test the exposed knobs."""
        assert env.separator == "_"
        assert env.index_format == "_%d"
        assert env.data == ENV

    def test_empty_separator(self):
        """Test that an empty separator is refused."""
        with pytest.raises(ValueError):
            FlatStorage({}, separator="")

    @pytest.mark.parametrize("fmt", ["[]", "%d", "[%d]%d"])
    def test_bad_index_format(self, fmt: str):
        """Test that malformed index templates are refused."""
        with pytest.raises(ValueError):
            FlatStorage({}, index_format=fmt)

    def test_nil(self):
        """Test nil construction."""
        assert FlatStorage.nil().is_nil
        assert FlatStorage(None).is_nil
        assert not FlatStorage({}).is_nil


class TestSub:
    """Test suite for FlatStorage.sub."""

    def test_leaf(self, env: FlatStorage):
        """Test addressing a single key."""
        assert env.sub("database.host").convert_to(str) == "db"

    def test_indexed_leaf(self, env: FlatStorage):
        """Test addressing through an index."""
        assert env.sub("pools[1].name").convert_to(str) == "replica"

    def test_indexed_record(self, env: FlatStorage):
        """Test that index 1 does not pick up index 10."""
        data = dict(ENV, POOLS_10_NAME="tenth")
        s = FlatStorage(data, separator="_", index_format="_%d").sub("pools[1]")
        assert s.data == {"NAME": "replica", "MAX_CONNS": "5"}

    def test_list_prefix_keeps_index_tokens(self):
        """Test that a list prefix keeps the index tokens of its children."""
        assert FlatStorage(DOTTED).sub("servers").data == {"[0].host": "a", "[1].host": "b"}

    def test_prefix_must_end_at_boundary(self):
        """Test that server does not match servers[0]."""
        assert FlatStorage(DOTTED).sub("server").data == {"host": "localhost", "port": 8080}

    def test_ignore_case(self):
        """Test case-insensitive and case-sensitive matching."""
        strict = FlatStorage(ENV, separator="_", index_format="_%d", ignore_case=False)
        assert strict.sub("database.host").is_nil
        assert strict.sub("DATABASE.HOST").convert_to(str) == "db"

    @pytest.mark.parametrize("path", ["missing", "pools[9]", "pools[x]", "database.host.deeper"])
    def test_misses_are_nil(self, env: FlatStorage, path: str):
        """Test that misses yield a nil flat storage with the same grammar."""
        sub = env.sub(path)
        assert isinstance(sub, FlatStorage)
        assert sub.is_nil
        assert sub.separator == "_"

    def test_empty_path(self, env: FlatStorage):
        """Test that an empty path returns the storage itself."""
        assert env.sub("") is env


class TestConvertTo:
    """Test suite for type-guided binding."""

    def test_environment_style_structure(self, env: FlatStorage):
        """Test binding environment variables into nested records."""
        cfg = env.convert_to(EnvConfig)
        assert cfg.app == App("demo", True)
        assert cfg.database == DB("db", 5432, 20)
        assert cfg.pools == [PoolCfg("primary", 10), PoolCfg("replica", 5)]
        assert cfg.servers == ["a", "b"]
        assert cfg.labels == {"ENV": "prod", "TEAM_NAME": "core"}
        assert cfg.timeout == timedelta(seconds=30)
        assert cfg.started == datetime(2023, 1, 1, tzinfo=timezone.utc)

    def test_sub_then_bind(self, env: FlatStorage):
        """Test binding a sub-section."""
        assert env.sub("pools[0]").convert_to(PoolCfg) == PoolCfg("primary", 10)

    def test_sibling_prefix_is_not_a_value(self):
        """Test that HOST_NAME does not leak into a host field."""
        s = FlatStorage({"HOST_NAME": "x", "PORT": "1"}, separator="_", index_format="_%d")
        assert s.convert_to(DB) == DB("", 1, 0)

    def test_dotted_grammar(self):
        """Test the default dotted grammar."""
        s = FlatStorage(DOTTED)
        assert s.sub("ports").convert_to(List[int]) == [80, 443]
        assert s.sub("ports").convert_to(Tuple[int, int]) == (80, 443)
        assert s.sub("server").convert_to(Dict[str, Any]) == {"host": "localhost", "port": 8080}

    def test_structured_mapping_values(self):
        """Test mappings of records split at the first boundary."""
        data = {"DBS_PRIMARY_HOST": "a", "DBS_PRIMARY_PORT": "1", "DBS_REPLICA_HOST": "b"}
        s = FlatStorage(data, separator="_", index_format="_%d")
        assert s.sub("dbs").convert_to(Dict[str, DB]) == {
            "PRIMARY": DB("a", 1),
            "REPLICA": DB("b"),
        }

    def test_sparse_list(self):
        """Test that gaps in indices become zero values."""
        s = FlatStorage({"SERVERS_0": "a", "SERVERS_2": "c"}, separator="_", index_format="_%d")
        assert s.sub("servers").convert_to(List[str]) == ["a", "", "c"]

    def test_defaults(self):
        """Test default injection through a flat storage."""
        assert FlatStorage({"PORT": "9"}, separator="_").convert_to(Defaulted) == Defaulted("localhost", 9)
        disabled = FlatStorage({}).with_defaults(False)
        assert disabled.convert_to(Defaulted) == Defaulted("", 0)

    def test_storage_field(self):
        """Test that Storage-typed fields receive a flat sub-storage."""
        s = FlatStorage({"type": "redis", "options.addr": "x", "options.db": "1"})
        plugin = s.convert_to(PluginCfg)
        assert isinstance(plugin.options, FlatStorage)
        assert plugin.options.sub("db").convert_to(int) == 1

    @pytest.mark.parametrize(
        "data,path",
        [
            ({"database[0]": "x"}, "database"),
            ({"database[0].host": "x"}, "database"),
            ({"app.name[0]": "x", "app.name[1]": "y"}, "app.name"),
        ],
    )
    def test_list_into_record_or_scalar_fails(self, data: Dict[str, Any], path: str):
        """Test that index-only keys under a record or scalar field are a list."""
        with pytest.raises(ConversionError) as exc_info:
            FlatStorage(data).convert_to(EnvConfig)
        assert exc_info.value.path == path

    def test_list_at_top_level_into_record_fails(self):
        """Test a top-level list bound into a record."""
        with pytest.raises(ConversionError):
            FlatStorage({"[0]": "x"}).convert_to(DB)

    def test_nil_is_a_no_op(self):
        """Test that nil flat storages return the current value."""
        current = DB("h")
        assert FlatStorage.nil().convert_to(current) is current
        assert current == DB("h")


class TestNested:
    """Test suite for from_nested and to_nested."""

    def test_generic_reconstruction(self):
        """Test rebuilding the dotted sample without type guidance."""
        assert FlatStorage(DOTTED).to_nested() == {
            "server": {"host": "localhost", "port": 8080},
            "servers": [{"host": "a"}, {"host": "b"}],
            "ports": [80, 443],
        }

    def test_round_trip(self):
        """Test that from_nested and to_nested are inverses."""
        tree = {"a": {"b": [1, {"c": "x"}], "empty": {}, "none": []}, "flag": True}
        flat = FlatStorage.from_nested(tree)
        assert flat.data == {"a.b[0]": 1, "a.b[1].c": "x", "a.empty": {}, "a.none": [], "flag": True}
        assert flat.to_nested() == tree

    def test_top_level_scalar(self):
        """Test that a top-level scalar is stored under the empty key."""
        flat = FlatStorage.from_nested(5)
        assert flat.data == {"": 5}
        assert flat.convert_to(int) == 5
        assert flat.to_nested() == 5

    def test_top_level_list(self):
        """Test a top-level list."""
        flat = FlatStorage.from_nested([1, 2])
        assert flat.data == {"[0]": 1, "[1]": 2}
        assert flat.to_nested() == [1, 2]

    def test_env_grammar(self):
        """Test flattening with an underscore grammar."""
        flat = FlatStorage.from_nested({"pools": [{"max_conns": 1}]}, separator="_", index_format="_%d")
        assert flat.data == {"pools_0_max_conns": 1}
        assert flat.convert_to(EnvConfig).pools == [PoolCfg("", 1)]

    @pytest.mark.parametrize("tree", [{"a": {"": 2}}, {"": 1}, {"a": [{"": 1}]}])
    def test_empty_keys_are_rejected(self, tree: Any):
        """Test that empty mapping keys cannot be flattened."""
        with pytest.raises(ValueError):
            FlatStorage.from_nested(tree)

    def test_nil(self):
        """Test that None flattens to a nil storage."""
        assert FlatStorage.from_nested(None).to_nested() is None


class TestEquals:
    """Test suite for FlatStorage.equals."""

    def test_same_pairs(self):
        """Test equal flat mappings."""
        assert FlatStorage({"a.b": 1}).equals(FlatStorage({"a.b": 1}))
        assert not FlatStorage({"a.b": 1}).equals(FlatStorage({"a.b": "1"}))

    def test_other_class(self):
        """Test that a tree storage with the same content is not equal."""
        assert not FlatStorage({"a": 1}).equals(TreeStorage({"a": 1}))

    def test_nil_rules(self):
        """Test nil comparisons."""
        assert FlatStorage.nil().equals(None)
        assert FlatStorage.nil().equals(TreeStorage.nil())
        assert not FlatStorage.nil().equals(FlatStorage({}))
        assert TreeStorage.nil().equals(FlatStorage.nil())
