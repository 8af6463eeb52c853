"""Tests for plum.marketplace.source module."""

import pytest

from plum.marketplace.source import (
    InvalidSourceError,
    derive_source,
    is_github_repo,
    parse_marketplace_arg,
)


class TestDeriveSource:
    """Tests for derive_source."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://github.com/acme/team", "acme/team"),
            ("https://github.com/acme/team.git", "acme/team"),
            ("https://github.com/acme/team/tree/main", "acme/team"),
            ("https://gitlab.com/acme/team.git", "https://gitlab.com/acme/team.git"),
        ],
    )
    def test_derives_shorthand(self, url: str, expected: str):
        assert derive_source(url) == expected

    @pytest.mark.parametrize("url", ["", "acme/team", "https://github.com/acme"])
    def test_rejects_invalid(self, url: str):
        with pytest.raises(InvalidSourceError):
            derive_source(url)

    def test_is_github_repo(self):
        assert is_github_repo("https://github.com/acme/team")
        assert not is_github_repo("https://example.com/acme/team")


class TestParseMarketplaceArg:
    """Tests for parse_marketplace_arg."""

    def test_owner_repo(self):
        name, entry = parse_marketplace_arg("acme/team-plugins")

        assert name == "team-plugins"
        assert entry.to_json() == {"source": {"source": "github", "repo": "acme/team-plugins"}}

    def test_with_ref(self):
        name, entry = parse_marketplace_arg("acme/team-plugins#v2")

        assert name == "team-plugins"
        assert entry.source.repo == "acme/team-plugins#v2"

    def test_github_url(self):
        name, entry = parse_marketplace_arg("https://github.com/acme/team.git")

        assert name == "team"
        assert entry.source.repo == "acme/team"

    @pytest.mark.parametrize("value", ["team", "#v2", ""])
    def test_rejects_non_repo(self, value: str):
        with pytest.raises(InvalidSourceError, match="expected owner/repo"):
            parse_marketplace_arg(value)
