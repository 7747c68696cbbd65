"""Configuration and credential loading."""
import json
import logging
import os
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigError
from .formatter import DEFAULT_NAMING_TEMPLATE, validate_template

log = logging.getLogger(__name__)


CONFIG_FILE = "app_config.json"
CREDENTIALS_FILE = "credentials.json"


# ---------------------------------------------------------------------------
# Platform-appropriate settings directory
# ---------------------------------------------------------------------------

def settings_dir() -> Path:
    """Return the platform settings directory (not created here)."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home()))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "tvrenamer"


# ---------------------------------------------------------------------------
# Default values for every known key
# ---------------------------------------------------------------------------

DEFAULT_CONFIG: dict[str, Any] = {
    # Filter rules
    "blacklist_extensions": ["nfo", "txt", "url", "exe", "jpg", "png", "sfv", "md5"],
    "whitelist_folders": [],
    "whitelist_filenames": [],
    "whitelist_tags": [],

    # Naming
    "naming_template": DEFAULT_NAMING_TEMPLATE,
    "season_folder_template": None,

    # Execution
    "workers": 4,
    "rate_limit": 10.0,
    "rate_burst": 10,
    "request_timeout": 10.0,
    "max_retries": 4,
    "remove_empty_folders": False,
}


@dataclass
class RenameConfig:
    """Caller-supplied rules that decide what happens to each file."""
    blacklist_extensions: set[str] = field(
        default_factory=lambda: set(DEFAULT_CONFIG["blacklist_extensions"])
    )
    whitelist_folders: set[str] = field(default_factory=set)
    whitelist_filenames: set[str] = field(default_factory=set)
    whitelist_tags: list[str] = field(default_factory=list)
    naming_template: str = DEFAULT_NAMING_TEMPLATE
    season_folder_template: str | None = None
    workers: int = 4
    rate_limit: float = 10.0
    rate_burst: int = 10
    request_timeout: float = 10.0
    max_retries: int = 4
    remove_empty_folders: bool = False

    def __post_init__(self) -> None:
        ok, error = validate_template(self.naming_template)
        if not ok:
            raise ConfigError(f"Invalid naming_template: {error}")
        if self.season_folder_template:
            ok, error = validate_template(self.season_folder_template)
            if not ok:
                raise ConfigError(f"Invalid season_folder_template: {error}")
        if self.workers < 1:
            raise ConfigError("workers must be at least 1")
        if self.rate_limit <= 0 or self.rate_burst < 1:
            raise ConfigError("rate_limit must be positive and rate_burst at least 1")
        if self.max_retries < 1:
            raise ConfigError("max_retries must be at least 1")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RenameConfig":
        """Build a config from defaults overlaid with *data*; unknown keys are ignored."""
        merged = DEFAULT_CONFIG.copy()
        merged.update(data)
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            log.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))

        values = {k: v for k, v in merged.items() if k in known}
        try:
            for key in ("blacklist_extensions", "whitelist_folders", "whitelist_filenames"):
                values[key] = set(values[key])
            values["whitelist_tags"] = list(values["whitelist_tags"])
            values["workers"] = int(values["workers"])
            values["rate_burst"] = int(values["rate_burst"])
            values["max_retries"] = int(values["max_retries"])
            values["rate_limit"] = float(values["rate_limit"])
            values["request_timeout"] = float(values["request_timeout"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config value: {e}") from e
        return cls(**values)


def load_config(path: Path | None = None) -> RenameConfig:
    """
    Load the rename configuration.

    Args:
        path: JSON file to read. Defaults to app_config.json in the
              settings directory; a missing default file yields defaults.

    Raises:
        ConfigError: If the file cannot be read or has invalid values
    """
    explicit = path is not None
    path = path or settings_dir() / CONFIG_FILE
    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return RenameConfig.from_dict({})

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigError(f"Could not read config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a JSON object")
    log.debug("Loaded config from %s", path)
    return RenameConfig.from_dict(data)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Credentials:
    """TVDB login information."""
    api_key: str
    user_key: str = ""
    username: str = ""

    def login_body(self) -> dict[str, str]:
        body = {"apikey": self.api_key}
        if self.user_key:
            body["userkey"] = self.user_key
        if self.username:
            body["username"] = self.username
        return body

    def __repr__(self) -> str:
        return f"Credentials(api_key='***', username={self.username!r})"


def _credentials_from_env() -> Credentials | None:
    api_key = os.environ.get("TVDB_API_KEY")
    if not api_key:
        return None
    return Credentials(
        api_key=api_key,
        user_key=os.environ.get("TVDB_USER_KEY", ""),
        username=os.environ.get("TVDB_USERNAME", ""),
    )


def load_credentials(path: Path | None = None) -> Credentials:
    """
    Load TVDB credentials.

    Priority:
    1. JSON file (``{"credentials": {"apikey", "userkey", "username"}}``
       or the same keys at top level)
    2. TVDB_API_KEY / TVDB_USER_KEY / TVDB_USERNAME environment variables
    3. .env file in current directory
    4. .env file in user home directory

    Raises:
        ConfigError: If no credentials can be found
    """
    explicit = path is not None
    path = path or settings_dir() / CREDENTIALS_FILE
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigError(f"Could not read credentials {path}: {e}") from e
        if isinstance(data, dict) and isinstance(data.get("credentials"), dict):
            data = data["credentials"]
        if not isinstance(data, dict) or not data.get("apikey"):
            raise ConfigError(f"Credentials file {path} has no apikey")
        return Credentials(
            api_key=str(data["apikey"]),
            user_key=str(data.get("userkey", "")),
            username=str(data.get("username", "")),
        )
    if explicit:
        raise ConfigError(f"Credentials file not found: {path}")

    creds = _credentials_from_env()
    if creds:
        return creds

    for env_path in (Path.cwd() / ".env", Path.home() / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            creds = _credentials_from_env()
            if creds:
                return creds

    raise ConfigError(
        "TVDB credentials not found.\n"
        "Set them using one of these methods:\n"
        f"  1. Create {path} with apikey/userkey/username\n"
        "  2. Environment variables: TVDB_API_KEY, TVDB_USER_KEY, TVDB_USERNAME\n"
        "  3. A .env file with the same variables"
    )
