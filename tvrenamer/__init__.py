"""
tvrenamer - TV Episode Renamer

A tool for renaming TV episode files using TVDB metadata.
"""
from .models import (
    RawEntry,
    Candidate,
    SeriesRecord,
    EpisodeRecord,
    ResolvedMatch,
    Unresolved,
    RenamePlan,
    Outcome,
)
from .errors import (
    TVRenamerError,
    ConfigError,
    AuthError,
    MetadataLookupError,
    FilesystemError,
)
from .parser import parse
from .tvdb import TVDBClient
from .resolver import resolve
from .planner import plan
from .engine import Engine
from .config import RenameConfig, Credentials, load_config, load_credentials
from .cache import Cache

__version__ = "0.1.0"
__all__ = [
    "RawEntry",
    "Candidate",
    "SeriesRecord",
    "EpisodeRecord",
    "ResolvedMatch",
    "Unresolved",
    "RenamePlan",
    "Outcome",
    "TVRenamerError",
    "ConfigError",
    "AuthError",
    "MetadataLookupError",
    "FilesystemError",
    "parse",
    "TVDBClient",
    "resolve",
    "plan",
    "Engine",
    "RenameConfig",
    "Credentials",
    "load_config",
    "load_credentials",
    "Cache",
]
