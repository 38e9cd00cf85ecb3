"""
Tests for version comparison — ordering and breaking-change classification.
"""

import pytest

from runtimekit.core.services.versioning import (
    Ordering,
    clean_version,
    compare,
    is_breaking,
    is_newer,
    max_version,
    parse_version,
)


class TestCompare:
    def test_equal(self):
        assert compare("1.2.3", "1.2.3") is Ordering.EQUAL

    def test_major_bump_is_less_and_breaking(self):
        assert compare("1.9.0", "2.0.0") is Ordering.LESS
        assert is_breaking("1.9.0", "2.0.0")

    def test_patch_bump_is_less_and_not_breaking(self):
        assert compare("1.2.3", "1.2.4") is Ordering.LESS
        assert not is_breaking("1.2.3", "1.2.4")

    def test_numeric_not_lexicographic(self):
        assert compare("1.10.0", "1.9.0") is Ordering.GREATER

    def test_padding(self):
        assert compare("1.2", "1.2.0") is Ordering.EQUAL
        assert compare("1.2", "1.2.1") is Ordering.LESS

    def test_prerelease_sorts_below_release(self):
        assert compare("2.0.0-rc.1", "2.0.0") is Ordering.LESS
        assert compare("2.0.0", "2.0.0-beta") is Ordering.GREATER

    def test_prerelease_identifiers(self):
        assert compare("1.0.0-alpha", "1.0.0-beta") is Ordering.LESS
        assert compare("1.0.0-rc.2", "1.0.0-rc.10") is Ordering.LESS

    def test_build_metadata_ignored(self):
        assert compare("1.0.0+build.5", "1.0.0") is Ordering.EQUAL

    def test_non_numeric_component_is_lowest(self):
        assert compare("1.x.0", "1.0.0") is Ordering.LESS

    @pytest.mark.parametrize("garbage", ["", None, "...", "not-a-version", "v"])
    def test_malformed_never_raises(self, garbage):
        assert compare(garbage, "1.0.0") in set(Ordering)

    def test_range_prefixes_stripped(self):
        assert compare("^1.2.3", "1.2.3") is Ordering.EQUAL
        assert compare("~=1.2", "v1.2") is Ordering.EQUAL
        assert compare(">=2.0", "2.0.0") is Ordering.EQUAL


class TestBreaking:
    def test_same_major(self):
        assert not is_breaking("4.17.0", "4.18.2")

    def test_prerelease_added(self):
        assert is_breaking("1.0.0", "1.0.1-beta")

    def test_prerelease_removed(self):
        assert is_breaking("1.0.0-rc.1", "1.0.0")

    def test_different_prerelease_tags(self):
        assert is_breaking("1.0.0-alpha", "1.0.0-beta")

    def test_go_style_tags(self):
        assert is_breaking("v1.9.1", "v2.0.0")
        assert not is_breaking("v1.9.1", "v1.10.0")


class TestHelpers:
    def test_clean_version(self):
        assert clean_version("^4.17.21") == "4.17.21"
        assert clean_version(">=1.2, <2") == "1.2"
        assert clean_version(None) == ""

    def test_parse_version(self):
        parsed = parse_version("v2.1.0-rc.1+sha.abc")
        assert parsed.release == ("2", "1", "0")
        assert parsed.prerelease == "rc.1"
        assert parsed.build == "sha.abc"
        assert parsed.major == "2"

    def test_is_newer(self):
        assert is_newer("1.0.1", "1.0.0")
        assert not is_newer("1.0.0", "1.0.0")

    def test_max_version(self):
        assert max_version(["1.2.0", "1.10.0", "1.9.9", "2.0.0-rc.1"]) == "2.0.0-rc.1"
        assert max_version([]) is None
