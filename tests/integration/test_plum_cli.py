"""Integration tests for the plum CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from plum import __version__
from plum.cli.main import app

from conftest import read_json, write_json


@pytest.fixture
def runner():
    """Get a CLI test runner."""
    return CliRunner()


@pytest.fixture
def invoke(runner: CliRunner, config_dir: Path):
    """Invoke plum against the temporary configuration directory."""

    def _invoke(*args: str):
        return runner.invoke(app, ["--config-dir", str(config_dir), *args])

    return _invoke


class TestVersionCommand:
    """Tests for 'plum version'."""

    def test_prints_version(self, invoke):
        result = invoke("version")

        assert result.exit_code == 0
        assert f"plum {__version__}" in result.output


class TestInstallCommand:
    """Tests for 'plum install'."""

    def test_install_from_marketplace(self, invoke, marketplaces, config_dir: Path):
        result = invoke("install", "formatter")

        assert result.exit_code == 0
        assert "Installed formatter@alpha" in result.output
        assert read_json(config_dir / "settings.json") == {"enabledPlugins": {"formatter@alpha": True}}
        registry = read_json(config_dir / "plugins" / "installed_plugins_v2.json")
        assert registry["plugins"]["formatter@alpha"][0]["version"] == "1.2.0"
        assert (config_dir / "plugins" / "cache" / "alpha" / "formatter" / "commands" / "format.md").exists()

    def test_install_into_project(self, invoke, marketplaces, project_dir: Path):
        result = invoke("install", "linter@beta", "--scope", "project", "--project", str(project_dir))

        assert result.exit_code == 0
        assert read_json(project_dir / ".claude" / "settings.json") == {"enabledPlugins": {"linter@beta": True}}

    def test_partial_failure_exits_nonzero(self, invoke, marketplaces, config_dir: Path):
        result = invoke("install", "ghost", "linter")

        assert result.exit_code == 1
        assert "not found in any marketplace" in result.output
        assert read_json(config_dir / "settings.json") == {"enabledPlugins": {"linter@beta": True}}

    def test_managed_scope_rejected(self, invoke, marketplaces, temp_dir: Path):
        result = invoke("install", "formatter", "--scope", "managed")

        assert result.exit_code == 1
        assert "managed scope is read-only" in result.output
        assert not (temp_dir / "managed").exists()

    def test_invalid_scope(self, invoke, marketplaces):
        result = invoke("install", "formatter", "--scope", "global")

        assert result.exit_code == 1
        assert "invalid scope 'global'" in result.output


class TestEnableDisableCommands:
    """Tests for 'plum enable' and 'plum disable'."""

    def test_enable_qualified_name(self, invoke, config_dir: Path):
        result = invoke("enable", "foo@bar")

        assert result.exit_code == 0
        assert (config_dir / "settings.json").read_bytes() == (
            b'{\n  "enabledPlugins": {\n    "foo@bar": true\n  }\n}\n'
        )

    def test_disable_bare_name_in_local_scope(self, invoke, config_dir: Path, project_dir: Path):
        write_json(config_dir / "settings.json", {"enabledPlugins": {"fmt@alpha": True}})

        result = invoke("disable", "fmt", "--scope", "local", "--project", str(project_dir))

        assert result.exit_code == 0
        local = read_json(project_dir / ".claude" / "settings.local.json")
        assert local == {"enabledPlugins": {"fmt@alpha": False}}

        listing = invoke("list", "--json", "--project", str(project_dir))
        assert listing.exit_code == 0
        assert json.loads(listing.stdout) == [
            {"name": "fmt@alpha", "enabled": False, "scope": "local", "version": "", "installed": False}
        ]

    def test_unknown_bare_name(self, invoke):
        result = invoke("enable", "ghost")

        assert result.exit_code == 1
        assert "specify full name" in result.output

    def test_invalid_identity(self, invoke, config_dir: Path):
        result = invoke("enable", "@bar")

        assert result.exit_code == 1
        assert not (config_dir / "settings.json").exists()

    def test_managed_scope_rejected(self, invoke, temp_dir: Path):
        managed = write_json(temp_dir / "managed" / "settings.json", {"enabledPlugins": {"a@m": True}})
        before = managed.read_bytes()

        result = invoke("disable", "a@m", "--scope", "managed")

        assert result.exit_code == 1
        assert managed.read_bytes() == before


class TestRemoveCommand:
    """Tests for 'plum remove'."""

    def test_remove_installed_plugin(self, invoke, marketplaces, config_dir: Path):
        invoke("install", "formatter")

        result = invoke("remove", "formatter")

        assert result.exit_code == 0
        assert "Removed formatter@alpha from user scope" in result.output
        assert read_json(config_dir / "settings.json") == {}
        assert not (config_dir / "plugins" / "cache" / "alpha" / "formatter").exists()
        assert read_json(config_dir / "plugins" / "installed_plugins_v2.json")["plugins"] == {}

    def test_remove_all_scopes(self, invoke, marketplaces, config_dir: Path, project_dir: Path):
        invoke("install", "formatter")
        invoke("enable", "formatter@alpha", "--scope", "project", "--project", str(project_dir))

        result = invoke("remove", "formatter@alpha", "--all", "--project", str(project_dir))

        assert result.exit_code == 0
        assert read_json(config_dir / "settings.json") == {}
        assert read_json(project_dir / ".claude" / "settings.json") == {}

    def test_remove_keep_cache(self, invoke, marketplaces, config_dir: Path):
        invoke("install", "formatter")

        result = invoke("remove", "formatter@alpha", "--keep-cache")

        assert result.exit_code == 0
        assert (config_dir / "plugins" / "cache" / "alpha" / "formatter").exists()


class TestUpdateCommand:
    """Tests for 'plum update'."""

    def test_dry_run_lists_updates(self, invoke, marketplaces, config_dir: Path):
        write_json(config_dir / "settings.json", {"enabledPlugins": {"formatter@alpha": True}})
        write_json(
            config_dir / "plugins" / "installed_plugins_v2.json",
            {
                "version": 2,
                "plugins": {
                    "formatter@alpha": [{"scope": "user", "installPath": "/old", "version": "1.0.0"}]
                },
            },
        )

        result = invoke("update", "--dry-run")

        assert result.exit_code == 0
        assert "Found 1 update(s)" in result.output
        assert "formatter@alpha" in result.output
        registry = read_json(config_dir / "plugins" / "installed_plugins_v2.json")
        assert registry["plugins"]["formatter@alpha"][0]["version"] == "1.0.0"

    def test_update_installs_newer_version(self, invoke, marketplaces, config_dir: Path):
        write_json(config_dir / "settings.json", {"enabledPlugins": {"formatter@alpha": True}})
        write_json(
            config_dir / "plugins" / "installed_plugins_v2.json",
            {
                "version": 2,
                "plugins": {
                    "formatter@alpha": [{"scope": "user", "installPath": "/old", "version": "1.0.0"}]
                },
            },
        )

        result = invoke("update", "formatter")

        assert result.exit_code == 0
        registry = read_json(config_dir / "plugins" / "installed_plugins_v2.json")
        assert registry["plugins"]["formatter@alpha"][0]["version"] == "1.2.0"

    def test_nothing_to_update(self, invoke, marketplaces):
        result = invoke("update")

        assert result.exit_code == 0
        assert "up to date" in result.output


class TestListCommand:
    """Tests for 'plum list'."""

    def test_empty(self, invoke):
        result = invoke("list")

        assert result.exit_code == 0
        assert "No plugins configured" in result.output

    def test_json_filters(self, invoke, config_dir: Path):
        write_json(config_dir / "settings.json", {"enabledPlugins": {"a@m": True, "b@m": False}})

        enabled = json.loads(invoke("list", "--json", "--enabled").stdout)
        disabled = json.loads(invoke("list", "--json", "--disabled").stdout)

        assert [row["name"] for row in enabled] == ["a@m"]
        assert [row["name"] for row in disabled] == ["b@m"]


class TestMarketplaceCommands:
    """Tests for 'plum marketplace'."""

    def test_add_and_remove(self, invoke, config_dir: Path):
        result = invoke("marketplace", "add", "acme/team-plugins#v2")

        assert result.exit_code == 0
        assert read_json(config_dir / "settings.json") == {
            "extraKnownMarketplaces": {
                "team-plugins": {"source": {"source": "github", "repo": "acme/team-plugins#v2"}}
            }
        }

        result = invoke("marketplace", "remove", "team-plugins")

        assert result.exit_code == 0
        assert read_json(config_dir / "settings.json") == {}

    def test_add_invalid_repo(self, invoke, config_dir: Path):
        result = invoke("marketplace", "add", "not-a-repo")

        assert result.exit_code == 1
        assert "expected owner/repo" in result.output
        assert not (config_dir / "settings.json").exists()

    def test_remove_unknown(self, invoke):
        result = invoke("marketplace", "remove", "nothing")

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_list(self, invoke, marketplaces):
        result = invoke("marketplace", "list")

        assert result.exit_code == 0
        assert "alpha" in result.output
        assert "beta" in result.output

    def test_refresh(self, invoke):
        result = invoke("marketplace", "refresh")

        assert result.exit_code == 0
        assert "Cleared 0 cached marketplace(s)" in result.output
