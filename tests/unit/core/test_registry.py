"""Tests for plum.core.registry module."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from plum.config.schemas import PluginInstall
from plum.core.registry import InstalledPluginsRegistry, RegistryError, utc_timestamp
from plum.settings.errors import InvalidPluginNameError

from conftest import read_json, write_json


def make_install(scope: str = "user", version: str = "1.0.0", stamp: str = "2026-01-01T00:00:00Z") -> PluginInstall:
    return PluginInstall(
        scope=scope,
        install_path=f"/cache/m/p-{scope}",
        version=version,
        installed_at=stamp,
        last_updated=stamp,
    )


class TestUtcTimestamp:
    """Tests for utc_timestamp."""

    def test_formats_rfc3339_utc(self):
        now = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)

        assert utc_timestamp(now) == "2026-03-04T05:06:07Z"

    def test_converts_other_timezones(self):
        now = datetime(2026, 3, 4, 7, 6, 7, tzinfo=timezone(timedelta(hours=2)))

        assert utc_timestamp(now) == "2026-03-04T05:06:07Z"


class TestLoad:
    """Tests for InstalledPluginsRegistry.load."""

    def test_missing_file_is_empty_v2_registry(self, registry: InstalledPluginsRegistry):
        loaded = registry.load()

        assert loaded.version == 2
        assert loaded.plugins == {}

    def test_reads_claude_code_format(self, registry: InstalledPluginsRegistry):
        write_json(
            registry.path,
            {
                "version": 2,
                "plugins": {
                    "formatter@alpha": [
                        {
                            "scope": "user",
                            "installPath": "/c/alpha/formatter",
                            "version": "1.2.0",
                            "installedAt": "2026-01-01T00:00:00Z",
                            "lastUpdated": "2026-01-02T00:00:00Z",
                            "gitCommitSha": "abc123",
                            "isLocal": False,
                        }
                    ]
                },
            },
        )

        installs = registry.get_installs("formatter@alpha")

        assert len(installs) == 1
        assert installs[0].install_path == "/c/alpha/formatter"
        assert installs[0].git_commit_sha == "abc123"
        assert installs[0].project_path is None

    def test_malformed_registry_raises(self, registry: InstalledPluginsRegistry):
        registry.path.parent.mkdir(parents=True, exist_ok=True)
        registry.path.write_text("{oops")

        with pytest.raises(RegistryError):
            registry.load()

    def test_wrong_shape_raises(self, registry: InstalledPluginsRegistry):
        write_json(registry.path, {"version": 2, "plugins": {"a@m": "not-a-list"}})

        with pytest.raises(RegistryError, match="Invalid plugin registry"):
            registry.load()


class TestUpsert:
    """Tests for InstalledPluginsRegistry.upsert_install."""

    def test_creates_file_with_aliases(self, registry: InstalledPluginsRegistry):
        registry.upsert_install("formatter@alpha", make_install())

        data = read_json(registry.path)
        assert data == {
            "version": 2,
            "plugins": {
                "formatter@alpha": [
                    {
                        "scope": "user",
                        "installPath": "/cache/m/p-user",
                        "version": "1.0.0",
                        "installedAt": "2026-01-01T00:00:00Z",
                        "lastUpdated": "2026-01-01T00:00:00Z",
                        "gitCommitSha": "",
                        "isLocal": False,
                    }
                ]
            },
        }
        assert registry.path.read_bytes().endswith(b"}\n")

    def test_same_scope_replaces_and_keeps_installed_at(self, registry: InstalledPluginsRegistry):
        registry.upsert_install("a@m", make_install(version="1.0.0", stamp="2026-01-01T00:00:00Z"))

        stored = registry.upsert_install("a@m", make_install(version="2.0.0", stamp="2026-02-01T00:00:00Z"))

        installs = registry.get_installs("a@m")
        assert len(installs) == 1
        assert installs[0].version == "2.0.0"
        assert installs[0].installed_at == "2026-01-01T00:00:00Z"
        assert installs[0].last_updated == "2026-02-01T00:00:00Z"
        assert stored.installed_at == "2026-01-01T00:00:00Z"

    def test_other_scope_appends(self, registry: InstalledPluginsRegistry):
        registry.upsert_install("a@m", make_install("user"))
        registry.upsert_install("a@m", make_install("project"))

        assert [i.scope for i in registry.get_installs("a@m")] == ["user", "project"]

    def test_keeps_unknown_top_level_fields(self, registry: InstalledPluginsRegistry):
        write_json(registry.path, {"version": 2, "plugins": {}, "generator": "claude"})

        registry.upsert_install("a@m", make_install())

        assert read_json(registry.path)["generator"] == "claude"

    def test_null_string_fields_read_as_empty(self, registry: InstalledPluginsRegistry):
        write_json(
            registry.path,
            {
                "version": 2,
                "plugins": {
                    "a@m": [
                        {
                            "scope": "user",
                            "installPath": "/cache/m/a",
                            "version": None,
                            "installedAt": None,
                            "lastUpdated": None,
                            "gitCommitSha": None,
                        }
                    ]
                },
            },
        )

        registry.upsert_install("b@m", make_install())

        record = registry.get_installs("a@m")[0]
        assert record.git_commit_sha == ""
        assert record.version == ""
        assert read_json(registry.path)["plugins"]["a@m"][0]["gitCommitSha"] == ""
        assert [i.scope for i in registry.get_installs("b@m")] == ["user"]

    def test_keeps_null_extra_fields(self, registry: InstalledPluginsRegistry):
        write_json(registry.path, {"version": 2, "plugins": {}, "mirror": None})

        registry.upsert_install("a@m", make_install())

        assert read_json(registry.path)["mirror"] is None

    def test_rejects_invalid_identity(self, registry: InstalledPluginsRegistry):
        with pytest.raises(InvalidPluginNameError):
            registry.upsert_install("nomarket", make_install())

        assert not registry.path.exists()


class TestRemove:
    """Tests for registry removal."""

    def test_remove_install_drops_one_scope(self, registry: InstalledPluginsRegistry):
        registry.upsert_install("a@m", make_install("user"))
        registry.upsert_install("a@m", make_install("local"))

        assert registry.remove_install("a@m", "user") is True

        assert [i.scope for i in registry.get_installs("a@m")] == ["local"]

    def test_remove_last_install_drops_entry(self, registry: InstalledPluginsRegistry):
        registry.upsert_install("a@m", make_install("user"))

        registry.remove_install("a@m", "user")

        assert "a@m" not in registry.load().plugins

    def test_remove_install_unknown(self, registry: InstalledPluginsRegistry):
        assert registry.remove_install("a@m", "user") is False

    def test_remove_entry(self, registry: InstalledPluginsRegistry):
        registry.upsert_install("a@m", make_install("user"))
        registry.upsert_install("b@m", make_install("user"))

        assert registry.remove("a@m") is True
        assert registry.remove("a@m") is False
        assert list(registry.load().plugins) == ["b@m"]

    def test_no_backup_is_taken(self, registry: InstalledPluginsRegistry, plum_config):
        registry.upsert_install("a@m", make_install())
        registry.remove("a@m")

        names = {p.name for p in Path(plum_config.plugins_dir).iterdir()}
        assert not any("backup" in n for n in names)
