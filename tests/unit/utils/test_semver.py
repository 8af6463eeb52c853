"""Tests for plum.utils.version module."""

import pytest

from plum.utils.version import SemVer, is_newer_version


class TestSemVerParse:
    """Tests for SemVer.parse."""

    def test_full_version(self):
        v = SemVer.parse("1.2.3-beta.1+build.5")

        assert (v.major, v.minor, v.patch) == (1, 2, 3)
        assert v.prerelease == "beta.1"
        assert v.build == "build.5"

    @pytest.mark.parametrize(
        "text,expected",
        [("v2.0.0", "2.0.0"), ("1", "1.0.0"), ("1.4", "1.4.0"), (" 3.1.4 ", "3.1.4")],
    )
    def test_lenient_forms(self, text: str, expected: str):
        assert str(SemVer.parse(text)) == expected

    @pytest.mark.parametrize("text", ["", "latest", "1.2.3.4", "01.2.3"])
    def test_rejects_garbage(self, text: str):
        with pytest.raises(ValueError, match="Invalid semver"):
            SemVer.parse(text)


class TestSemVerOrdering:
    """Tests for SemVer comparison."""

    @pytest.mark.parametrize(
        "lower,higher",
        [
            ("1.0.0", "1.0.1"),
            ("1.9.0", "1.10.0"),
            ("1.0.0-alpha", "1.0.0"),
            ("1.0.0-alpha", "1.0.0-alpha.1"),
            ("1.0.0-alpha.1", "1.0.0-alpha.beta"),
            ("1.0.0-beta.2", "1.0.0-beta.11"),
            ("1.0.0-rc.1", "1.0.0"),
        ],
    )
    def test_precedence(self, lower: str, higher: str):
        assert SemVer.parse(lower) < SemVer.parse(higher)

    def test_build_metadata_ignored(self):
        assert SemVer.parse("1.0.0+a") == SemVer.parse("1.0.0+b")


class TestIsNewerVersion:
    """Tests for is_newer_version."""

    def test_newer(self):
        assert is_newer_version("1.2.0", "1.1.9")

    def test_same_is_not_newer(self):
        assert not is_newer_version("1.2.0", "v1.2.0")

    def test_older_is_not_newer(self):
        assert not is_newer_version("0.9.0", "1.0.0")

    def test_falls_back_to_string_comparison(self):
        assert is_newer_version("2024-06-01", "2024-05-01")
        assert not is_newer_version("nightly", "stable")
