from __future__ import annotations

from pathlib import Path

import pytest

from launchsync.exceptions import ConfigurationError
from launchsync.models.config import LauncherConfig, resolve_manifest_url
from launchsync.models.manifest import OSTag
from launchsync.storage import paths
from launchsync.storage.config_manager import ConfigManager


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    config_file = tmp_path / "launchsync" / "config.ini"
    manager = ConfigManager(config_file)
    manager.save_new_config(
        {"manifest_uri": "https://releases.example.org/app", "max_workers": 6}
    )

    config = ConfigManager(config_file).load_config()

    assert config.manifest_uri == "https://releases.example.org/app"
    assert config.max_workers == 6
    assert config.ignore_update_errors is None
    assert config.verify_files is True
    assert config.config_path == str(config_file.parent)


def test_cli_options_override_file(tmp_path: Path) -> None:
    config_file = tmp_path / "config.ini"
    ConfigManager(config_file).save_new_config({"manifest_uri": "https://a.example.org"})

    config = ConfigManager(config_file).load_config(
        {"manifest_uri": "https://b.example.org/app.xml", "target_os": "osx"}
    )

    assert config.manifest_url == "https://b.example.org/app.xml"
    assert config.target_os is OSTag.MAC


def test_missing_file_needs_manifest_uri(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "absent.ini")

    with pytest.raises(ConfigurationError, match="No manifest URI"):
        manager.load_config()

    config = manager.load_config({"manifest_uri": "http://localhost:8080/app"})
    assert config.manifest_url == "http://localhost:8080/app/app.xml"


def test_migration_adds_missing_keys(tmp_path: Path) -> None:
    config_file = tmp_path / "config.ini"
    config_file.write_text(
        "[DEFAULT]\nmanifest_uri = https://releases.example.org\n", encoding="utf-8"
    )

    ConfigManager(config_file).load_config()

    content = config_file.read_text(encoding="utf-8")
    assert "max_workers = 4" in content
    assert "ignore_update_errors = \n" in content or "ignore_update_errors =\n" in content


@pytest.mark.parametrize(
    "line",
    ["max_workers = 99", "verify_files = maybe", "manifest_uri = ftp://example.org"],
)
def test_invalid_values_raise_configuration_error(tmp_path: Path, line: str) -> None:
    config_file = tmp_path / "config.ini"
    config_file.write_text(
        f"[DEFAULT]\nmanifest_uri = https://releases.example.org\n{line}\n",
        encoding="utf-8",
    )

    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config()


def test_tri_state_flags_defer_to_manifest(make_manifest) -> None:
    manifest = make_manifest({}, ignore_update_errors=True, lingering_update_screen=True)
    deferring = LauncherConfig(manifest_uri="https://example.org")
    strict = LauncherConfig(manifest_uri="https://example.org", ignore_update_errors=False)

    assert deferring.effective_ignore_update_errors(manifest) is True
    assert deferring.effective_lingering_update_screen(manifest) is True
    assert deferring.effective_ignore_update_errors(None) is False
    assert strict.effective_ignore_update_errors(manifest) is False


def test_resolve_manifest_url() -> None:
    assert resolve_manifest_url("https://x.org/app/") == "https://x.org/app/app.xml"
    assert resolve_manifest_url("https://x.org/custom.xml") == "https://x.org/custom.xml"


def test_cache_dir_prefixes(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(paths, "get_user_data_dir", lambda: tmp_path / "user")
    monkeypatch.setattr(paths, "get_all_users_dir", lambda: tmp_path / "all")

    assert paths.resolve_cache_dir("USERLIB/Demo") == tmp_path / "user" / "Demo"
    assert paths.resolve_cache_dir("ALLUSERS\\Demo") == tmp_path / "all" / "Demo"
    assert paths.resolve_cache_dir(None) == tmp_path / "user" / "launchsync" / "cache"
    assert paths.resolve_cache_dir(str(tmp_path / "plain")) == (tmp_path / "plain").resolve()
