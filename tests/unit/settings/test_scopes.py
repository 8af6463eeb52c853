"""Tests for plum.settings.scopes module."""

import os
from pathlib import Path

import pytest

from plum.settings.errors import InvalidScopeError, ManagedReadOnlyError
from plum.settings.scopes import (
    ALL_SCOPES,
    WRITABLE_SCOPES,
    Scope,
    ScopeResolver,
    normalize_project_path,
    parse_scope,
    require_writable,
)


class TestParseScope:
    """Tests for parse_scope."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("user", Scope.USER),
            ("PROJECT", Scope.PROJECT),
            (" local ", Scope.LOCAL),
            ("managed", Scope.MANAGED),
            (Scope.USER, Scope.USER),
        ],
    )
    def test_parses_known_scopes(self, value, expected):
        """Scope names are case-insensitive."""
        assert parse_scope(value) is expected

    def test_rejects_unknown_scope(self):
        """Unknown names raise InvalidScopeError."""
        with pytest.raises(InvalidScopeError, match="must be managed, user, project, or local"):
            parse_scope("global")

    def test_scope_str_is_value(self):
        assert str(Scope.LOCAL) == "local"


class TestPrecedence:
    """Tests for scope ordering and writability."""

    def test_precedence_order(self):
        """Managed beats local beats project beats user."""
        assert ALL_SCOPES == (Scope.MANAGED, Scope.LOCAL, Scope.PROJECT, Scope.USER)

    def test_managed_is_not_writable(self):
        assert Scope.MANAGED not in WRITABLE_SCOPES
        with pytest.raises(ManagedReadOnlyError, match="managed scope is read-only"):
            require_writable(Scope.MANAGED)

    @pytest.mark.parametrize("scope", [Scope.USER, Scope.PROJECT, Scope.LOCAL])
    def test_other_scopes_are_writable(self, scope):
        require_writable(scope)


class TestScopeResolver:
    """Tests for ScopeResolver."""

    def test_user_scope_in_config_dir(self, temp_dir: Path):
        resolver = ScopeResolver(temp_dir / "claude")

        assert resolver.resolve(Scope.USER) == temp_dir / "claude" / "settings.json"

    def test_project_scopes_in_project_dir(self, project_dir: Path):
        resolver = ScopeResolver(Path("/unused"))

        assert resolver.resolve("project", project_dir) == project_dir / ".claude" / "settings.json"
        assert resolver.resolve("local", project_dir) == project_dir / ".claude" / "settings.local.json"

    def test_project_path_defaults_to_cwd(self, project_dir: Path, monkeypatch: pytest.MonkeyPatch):
        """Empty project path means the working directory."""
        monkeypatch.chdir(project_dir)
        resolver = ScopeResolver(Path("/unused"))

        expected = Path(os.getcwd()) / ".claude" / "settings.json"
        assert resolver.resolve(Scope.PROJECT, "") == expected
        assert resolver.resolve(Scope.PROJECT) == expected

    def test_project_path_is_normalized(self, project_dir: Path):
        """Relative segments are collapsed."""
        resolver = ScopeResolver(Path("/unused"))
        messy = f"{project_dir}{os.sep}sub{os.sep}.."

        assert resolver.resolve(Scope.PROJECT, messy) == project_dir / ".claude" / "settings.json"

    def test_managed_override(self, temp_dir: Path):
        resolver = ScopeResolver(temp_dir, managed_path=temp_dir / "etc" / "managed.json")

        assert resolver.resolve(Scope.MANAGED) == temp_dir / "etc" / "managed.json"

    def test_managed_default_uses_platform_path(self, temp_dir: Path):
        """Without override the platform path is used (patched per test)."""
        resolver = ScopeResolver(temp_dir)

        assert resolver.resolve(Scope.MANAGED) == temp_dir / "managed" / "settings.json"

    def test_resolve_does_not_touch_filesystem(self, temp_dir: Path):
        resolver = ScopeResolver(temp_dir / "nowhere")

        resolver.resolve(Scope.LOCAL, temp_dir / "missing-project")

        assert not (temp_dir / "nowhere").exists()
        assert not (temp_dir / "missing-project").exists()

    def test_rejects_unknown_scope(self, temp_dir: Path):
        with pytest.raises(InvalidScopeError):
            ScopeResolver(temp_dir).resolve("team")

    def test_is_writable(self, temp_dir: Path):
        resolver = ScopeResolver(temp_dir)

        assert resolver.is_writable("user") is True
        assert resolver.is_writable("managed") is False


class TestNormalizeProjectPath:
    """Tests for normalize_project_path."""

    def test_relative_becomes_absolute(self, project_dir: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(project_dir.parent)

        assert normalize_project_path(project_dir.name) == Path(os.path.abspath(project_dir.name))
