"""Release-tag stripping for episode filenames.

Scene releases pad the show name with resolution, source, codec and group
tokens.  The patterns below remove them so that the remaining text can be
compared against canonical series names.  Order matters: bracketed and
parenthesised groups go first so that their contents are removed as a unit.
"""

import re

# ---------------------------------------------------------------------------
# Pattern groups
# ---------------------------------------------------------------------------

# Bracketed content  [anything]
_BRACKETS = r'\[[^\]]*\]'

# Parenthesised noise (parens containing known-tag keywords)
_PAREN_NOISE = r'\([^)]*(?:rip|sub|dub|720|1080|2160|x264|x265|hevc|web)[^)]*\)'

# Resolution / quality
_RESOLUTION = r'\b(480p|576p|720p|1080p|1080i|2160p|4k|uhd)\b'

# Video codec
_CODEC = r'\b(x 264|x 265|x264|x265|h 264|h 265|h264|h265|hevc|avc|xvid|divx|av1)\b'

# Audio codec / channels
_AUDIO = r'\b(aac(?: ?2[ .]0)?|ac3|eac3|ddp?(?: ?5[ .]1)?|dts(?:-?hd)?|truehd|atmos|flac|5[ .]1|2[ .]0)\b'

# Source / rip type
_SOURCE = (
    r'\b(web[- ]?dl|webrip|web|blu[- ]?ray|bdrip|brrip|hdtv|hdrip|dvdrip'
    r'|pdtv|sdtv|amzn|nf|dsnp|hmax|atvp)\b'
)

# HDR / bit-depth
_HDR = r'\b(hdr10\+?|hdr|dv|10 ?bit|8 ?bit)\b'

# Release / edition tags
_RELEASE = r'\b(repack|proper|rerip|real|internal|extended|uncut|limited|remux)\b'

# Trailing release group after dash  (e.g.  "-LOL")
_TRAILING_GROUP = r'-[a-z0-9]+$'

# Series names can legitimately contain words like "Real" or "Web", so only
# unambiguous technical tokens are removed in front of the episode marker.
_SERIES_NOISE = [
    _BRACKETS,
    _PAREN_NOISE,
    _RESOLUTION,
    _CODEC,
]

_ALL_NOISE = _SERIES_NOISE + [
    _AUDIO,
    _SOURCE,
    _HDR,
    _RELEASE,
    _TRAILING_GROUP,
]

_COMPILED_SERIES_NOISE = [re.compile(p, re.IGNORECASE) for p in _SERIES_NOISE]
_COMPILED_NOISE = [re.compile(p, re.IGNORECASE) for p in _ALL_NOISE]

# Tags worth keeping are the short bracketed/parenthesised tokens
_TAG_REGEX = re.compile(r'[\[\(]([a-zA-Z0-9]{2,})[\]\)]')

_VERSION_TOKEN = re.compile(r'(\d+(?:\.\d+){2,})')


def normalize_separators(name: str) -> str:
    """Replace dots and underscores with spaces and collapse whitespace.

    Multi-dot version-like tokens such as ``1.2.3`` are kept as a single
    token so they are not mistaken for season/episode numbers.
    """
    name = name.replace('_', ' ')
    parts = _VERSION_TOKEN.split(name)
    # split() with a capture group puts the kept tokens at odd indexes
    name = ''.join(
        part if i % 2 else part.replace('.', ' ')
        for i, part in enumerate(parts)
    )
    name = re.sub(r'--+', ' ', name)
    return re.sub(r'\s+', ' ', name).strip()


def strip_release_tags(text: str, *, series: bool = False) -> str:
    """Remove release noise from already-normalized text.

    Parameters
    ----------
    text:
        Text with separators already normalized to spaces.
    series:
        When *True*, only the conservative pattern set is applied, since
        the text is a show name rather than trailing release junk.
    """
    patterns = _COMPILED_SERIES_NOISE if series else _COMPILED_NOISE
    for pattern in patterns:
        text = pattern.sub(' ', text)
    # Drop empty parens/brackets left behind
    text = re.sub(r'\(\s*\)|\[\s*\]', ' ', text)
    text = re.sub(r'\s+', ' ', text).strip()
    return re.sub(r'^[\s\-]+|[\s\-]+$', '', text)


def find_tags(text: str) -> tuple[str, ...]:
    """Return bracketed tags such as ``[1080p]`` or ``(PROPER)`` in order."""
    return tuple(m.group(1) for m in _TAG_REGEX.finditer(text))
