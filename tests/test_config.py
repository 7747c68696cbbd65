import json
from pathlib import Path

import pytest

from tvrenamer import config as config_module
from tvrenamer.config import (
    DEFAULT_CONFIG,
    Credentials,
    RenameConfig,
    load_config,
    load_credentials,
)
from tvrenamer.errors import ConfigError
from tvrenamer.formatter import DEFAULT_NAMING_TEMPLATE

ENV_VARS = ("TVDB_API_KEY", "TVDB_USER_KEY", "TVDB_USERNAME")


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Point the settings directory at an empty temp folder."""
    directory = tmp_path / "settings"
    directory.mkdir()
    monkeypatch.setattr(config_module, "settings_dir", lambda: directory)
    return directory


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """No TVDB_* variables and no .env files in cwd or home.

    setenv before delenv makes monkeypatch remove anything load_dotenv
    puts back during the test.
    """
    for name in ENV_VARS:
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
    cwd = tmp_path / "cwd"
    home = tmp_path / "home"
    cwd.mkdir()
    home.mkdir()
    monkeypatch.chdir(cwd)
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: home))
    return cwd, home


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# RenameConfig
# ---------------------------------------------------------------------------

def test_defaults():
    config = RenameConfig()

    assert config.naming_template == DEFAULT_NAMING_TEMPLATE
    assert config.blacklist_extensions == set(DEFAULT_CONFIG["blacklist_extensions"])
    assert config.season_folder_template is None
    assert (config.workers, config.rate_limit, config.rate_burst) == (4, 10.0, 10)


def test_missing_default_file_gives_defaults(settings):
    assert load_config() == RenameConfig()


def test_load_config_file(settings):
    write_json(settings / "app_config.json", {
        "blacklist_extensions": ["nfo"],
        "whitelist_folders": ["Extras"],
        "season_folder_template": "Season {season}",
        "workers": "2",
        "not_a_setting": True,
    })

    config = load_config()

    assert config.blacklist_extensions == {"nfo"}
    assert config.whitelist_folders == {"Extras"}
    assert config.season_folder_template == "Season {season}"
    assert config.workers == 2
    assert config.rate_limit == 10.0


def test_explicit_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.json")


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_unreadable_config(tmp_path, content):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize("overrides", [
    {"naming_template": "{canonical_name} {year}"},
    {"naming_template": ""},
    {"season_folder_template": "{nope}"},
    {"workers": 0},
    {"rate_limit": 0},
    {"rate_burst": 0},
    {"max_retries": 0},
    {"workers": "many"},
])
def test_invalid_values(overrides):
    with pytest.raises(ConfigError):
        RenameConfig.from_dict(overrides)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

def test_credentials_file_nested(settings, clean_env):
    write_json(settings / "credentials.json", {
        "credentials": {"apikey": "k", "userkey": "u", "username": "n"},
    })

    assert load_credentials() == Credentials("k", "u", "n")


def test_credentials_file_flat(tmp_path, clean_env):
    path = write_json(tmp_path / "creds.json", {"apikey": "k"})

    creds = load_credentials(path)

    assert creds == Credentials("k")
    assert creds.login_body() == {"apikey": "k"}


def test_credentials_file_without_apikey(tmp_path, clean_env):
    path = write_json(tmp_path / "creds.json", {"username": "n"})

    with pytest.raises(ConfigError):
        load_credentials(path)


def test_credentials_from_environment(settings, clean_env, monkeypatch):
    monkeypatch.setenv("TVDB_API_KEY", "env-key")
    monkeypatch.setenv("TVDB_USERNAME", "env-user")

    assert load_credentials() == Credentials("env-key", "", "env-user")


def test_credentials_from_dotenv(settings, clean_env):
    cwd, _ = clean_env
    (cwd / ".env").write_text("TVDB_API_KEY=dotenv-key\nTVDB_USER_KEY=dotenv-user\n", encoding="utf-8")

    assert load_credentials() == Credentials("dotenv-key", "dotenv-user", "")


def test_credentials_from_home_dotenv(settings, clean_env):
    _, home = clean_env
    (home / ".env").write_text("TVDB_API_KEY=home-key\n", encoding="utf-8")

    assert load_credentials().api_key == "home-key"


def test_no_credentials_anywhere(settings, clean_env):
    with pytest.raises(ConfigError, match="TVDB credentials not found"):
        load_credentials()


def test_credentials_repr_hides_key():
    assert "secret" not in repr(Credentials("secret", "also-secret", "me"))
