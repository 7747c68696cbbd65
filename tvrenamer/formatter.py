"""Formatter module for generating final file names."""
import re
from typing import Any

from .models import EpisodeRecord, SeriesRecord


# Default templates
DEFAULT_NAMING_TEMPLATE = "{canonical_name} - S{season:02d}E{episode:02d} - {canonical_title}"
DEFAULT_SEASON_FOLDER_TEMPLATE = "Season {season:02d}"

SAMPLE_DATA = {
    "canonical_name": "Show Name",
    "season": 1,
    "episode": 2,
    "canonical_title": "Pilot Returns",
}

_PLACEHOLDER = re.compile(r'\{(\w+)(?::([^}]*))?\}')

# Characters not allowed in Windows filenames, plus control characters
_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_filename(name: str) -> str:
    """Strip characters that Windows or POSIX refuse in file names.

    Runs of whitespace are collapsed and leading/trailing dots and spaces
    removed, so the result may be empty.
    """
    name = _INVALID_CHARS.sub('', name)
    name = re.sub(r'\s+', ' ', name)
    return name.strip('. ')


def render_template(template: str, data: dict[str, Any]) -> str:
    """
    Substitute ``{name}`` and ``{name:spec}`` placeholders in one pass.

    Integer values honour the format spec (``{season:02d}`` or the short
    ``{season:02}``); other values are inserted as-is.  Substituted text
    is never scanned again, so braces inside values are harmless.

    Args:
        template: Template string
        data: Values by variable name

    Returns:
        Rendered string

    Raises:
        KeyError: If the template uses a variable missing from *data*
        ValueError: If a format spec does not apply to the value
    """
    def substitute(match: re.Match) -> str:
        key, spec = match.group(1), match.group(2)
        if key not in data:
            raise KeyError(f"Unknown template variable: {key}")
        value = data[key]
        if spec and isinstance(value, int):
            return format(value, spec if spec[-1].isalpha() else spec + "d")
        return str(value)

    return _PLACEHOLDER.sub(substitute, template)


def validate_template(template: str) -> tuple[bool, str]:
    """Check that *template* renders with the known variables."""
    if not template or not template.strip():
        return False, "Template cannot be empty"
    try:
        result = render_template(template, SAMPLE_DATA)
    except (KeyError, ValueError) as e:
        return False, f"Invalid template: {e}"
    if not sanitize_filename(result):
        return False, "Template produced empty result"
    return True, ""


def _drop_empty_title(template: str) -> str:
    """Remove the episode-title placeholder and the separator next to it."""
    template = re.sub(r'\s*-\s*\{canonical_title\}', '', template)
    template = re.sub(r'\{canonical_title\}\s*-\s*', '', template)
    return template.replace("{canonical_title}", "")


def _template_data(series: SeriesRecord, episode: EpisodeRecord) -> dict[str, Any]:
    return {
        "canonical_name": sanitize_filename(series.canonical_name),
        "season": episode.season,
        "episode": episode.episode,
        "canonical_title": sanitize_filename(episode.canonical_title),
    }


def format_episode_name(
    series: SeriesRecord,
    episode: EpisodeRecord,
    extension: str = "",
    template: str = DEFAULT_NAMING_TEMPLATE,
    tags: list[str] | None = None,
) -> str:
    """
    Format an episode filename.

    Format (default): {Series Name} - S{season:02}E{episode:02} - {Episode Name}.ext

    Args:
        series: TVDB series record
        episode: TVDB episode record
        extension: File extension without the dot (empty for none)
        template: Naming template
        tags: Release tags to keep, appended as " [TAG]"

    Returns:
        Formatted filename
    """
    title = sanitize_filename(episode.canonical_title)
    if not title:
        template = _drop_empty_title(template)

    filename = sanitize_filename(render_template(template, _template_data(series, episode)))

    for tag in tags or []:
        filename = f"{filename} [{sanitize_filename(tag)}]"

    if extension:
        return f"{filename}.{extension}"
    return filename


def format_season_folder(
    series: SeriesRecord,
    episode: EpisodeRecord,
    template: str = DEFAULT_SEASON_FOLDER_TEMPLATE,
) -> str:
    """Format the folder name that holds one season, e.g. 'Season 01'."""
    return sanitize_filename(render_template(template, _template_data(series, episode)))
