"""
Tests for version ordering
==========================
"""

import pytest

from config_logging import ValidationError
from version_compare.semver import bump, compare_versions, is_newer, parse_version


class TestOrdering:
    """Tests for semver-like precedence."""

    @pytest.mark.parametrize("lower, higher", [
        ("1.0.0", "1.0.1"),
        ("1.9.0", "1.10.0"),
        ("1.0.0", "2.0.0"),
        ("1.0.0-alpha", "1.0.0"),
        ("1.0.0-alpha", "1.0.0-alpha.1"),
        ("1.0.0-alpha.1", "1.0.0-alpha.beta"),
        ("1.0.0-alpha.2", "1.0.0-alpha.10"),
        ("1.0.0-beta", "1.0.0-rc.1"),
        ("1.0.0-rc.1", "1.0.0"),
        ("0.9.9", "1.0.0-alpha"),
    ])
    def test_precedence(self, lower, higher):
        assert compare_versions(lower, higher) == -1
        assert compare_versions(higher, lower) == 1
        assert is_newer(higher, lower)
        assert not is_newer(lower, higher)

    @pytest.mark.parametrize("left, right", [
        ("2", "2.0.0"),
        ("v1.2.3", "1.2.3"),
        ("1.2.3+build.5", "1.2.3"),
    ])
    def test_equivalent(self, left, right):
        assert compare_versions(left, right) == 0
        assert not is_newer(left, right)

    @pytest.mark.parametrize("value", ["", "abc", "1.2.3.4", "1.x", None])
    def test_invalid(self, value):
        with pytest.raises(ValidationError):
            parse_version(value)


class TestBump:
    """Tests for bump()."""

    def test_patch(self):
        assert bump("2.1.0") == "2.1.1"

    def test_minor(self):
        assert bump("1.2.3", "minor") == "1.3.0"

    def test_major(self):
        assert bump("1.2.3", "major") == "2.0.0"

    def test_prerelease_bumps_to_release(self):
        assert bump("2.1.0-rc.1") == "2.1.0"
        assert is_newer(bump("2.1.0-rc.1"), "2.1.0-rc.1")

    def test_unknown_part(self):
        with pytest.raises(ValueError):
            bump("1.0.0", "micro")
