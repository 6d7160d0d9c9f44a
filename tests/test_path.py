"""Unit tests for the path grammar."""

from __future__ import annotations

import pytest

from cfgbind.core.errors import PathError
from cfgbind.core.path import (
    PathSegment,
    check_index_format,
    format_path,
    index_pattern,
    parse_path,
)


class TestParsePath:
    """Test suite for parse_path."""

    def test_empty(self):
        """Test that an empty path has no segments."""
        assert parse_path("") == ()

    def test_members(self):
        """Test dotted member names."""
        assert parse_path("database.host") == (
            PathSegment.member("database"),
            PathSegment.member("host"),
        )

    def test_member_followed_by_index(self):
        """Test that a[0] yields a member and an index segment."""
        segs = parse_path("servers[1].port")
        assert [s.key for s in segs] == ["servers", "1", "port"]
        assert segs[1].is_index and segs[1].index == 1

    def test_consecutive_indices(self):
        """Test matrix-style indexing."""
        segs = parse_path("matrix[2][3]")
        assert [s.index for s in segs] == [None, 2, 3]

    def test_repeated_separators_are_skipped(self):
        """Test that empty members between separators are dropped."""
        assert [s.key for s in parse_path("a..b.")] == ["a", "b"]

    def test_invalid_index_text(self):
        """Test that non-numeric index text is kept but unusable."""
        segs = parse_path("servers[abc]")
        assert segs[1].is_index
        assert segs[1].index is None

    def test_unterminated_bracket(self):
        """Test that an unterminated bracket yields an invalid index."""
        segs = parse_path("servers[0")
        assert segs[-1].is_index
        assert segs[-1].index is None

    def test_custom_separator(self):
        """Test a multi-character separator."""
        segs = parse_path("app__db__host", separator="__")
        assert [s.key for s in segs] == ["app", "db", "host"]

    def test_empty_separator_rejected(self):
        """Test that an empty separator is a configuration error."""
        with pytest.raises(PathError):
            parse_path("a.b", separator="")


class TestFormatPath:
    """Test suite for format_path and index templates."""

    def test_dotted(self):
        """Test rendering with the default tokens."""
        assert format_path(parse_path("servers[0].host")) == "servers[0].host"

    def test_env_style(self):
        """Test rendering with an underscore grammar."""
        assert format_path(parse_path("pools[2].max"), "_", "_%d") == "pools_2_max"

    def test_invalid_index(self):
        """Test that an invalid index renders as None."""
        assert format_path(parse_path("a[x]")) is None

    def test_check_index_format(self):
        """Test splitting an index template."""
        assert check_index_format("[%d]") == ("[", "]")
        assert check_index_format("_%d") == ("_", "")

    @pytest.mark.parametrize("fmt", ["%d", "[]", "[%d][%d]", "%s", "[%d%%]"])
    def test_check_index_format_rejects(self, fmt: str):
        """Test that templates without exactly one %d are refused."""
        with pytest.raises(ValueError):
            check_index_format(fmt)

    def test_index_pattern_requires_boundary(self):
        """Test that an index token must end at a boundary."""
        pattern = index_pattern("_%d", "_")
        assert pattern.match("_0_name")
        assert pattern.match("_12")
        assert pattern.match("_1st") is None
