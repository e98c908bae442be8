"""Asset file naming.

Installed files are named ``{keyword}_{tag}_{provider}-{id}_{W}x{H}.{ext}``
so that the local index can recover provenance from the name alone (there
is no manifest file). The tag embeds the scene id plus a random suffix, so
two workers never write the same path.
"""

import re
import uuid
from dataclasses import dataclass

_UNSAFE_RE = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"[^0-9A-Za-z]")
_PROVIDER_RE = re.compile(r"[^a-z0-9]")

FILENAME_RE = re.compile(
    r"^(?P<keyword>.+?)_(?P<tag>[^_]+)_(?P<provider>[a-z0-9]+)-(?P<source_id>[^_]+)"
    r"_(?P<width>\d+)x(?P<height>\d+)$"
)

MAX_COMPONENT_LENGTH = 40


def safe_component(text: str | None, max_length: int = MAX_COMPONENT_LENGTH) -> str:
    """Make ``text`` usable inside a file name.

    Filesystem-reserved characters and whitespace become ``_``.

    Args:
        text: Raw text (keyword, id)
        max_length: Maximum length of the result

    Returns:
        Sanitized text, ``untitled`` when nothing is left
    """
    value = _UNSAFE_RE.sub("_", (text or "").strip())
    value = _WHITESPACE_RE.sub("_", value)[:max_length].strip("_")
    return value or "untitled"


def scene_tag(scene_id: str) -> str:
    """Unique, underscore-free tag for one installed file of a scene."""
    base = _TAG_RE.sub("", scene_id)[:12] or "s"
    return f"{base}{uuid.uuid4().hex[:6]}"


def build_filename(
    keyword: str | None,
    scene_id: str,
    provider: str,
    source_id: str,
    width: int,
    height: int,
    ext: str,
) -> str:
    """Build the installed file name for an acquired asset.

    Example:
        >>> build_filename("blue ocean", "s-3", "pexels", "8231", 1080, 1920, "mp4")
        'blue_ocean_s3e41f0a_pexels-8231_1080x1920.mp4'
    """
    provider_part = _PROVIDER_RE.sub("", provider.lower()) or "stock"
    id_part = _TAG_RE.sub("", str(source_id)) or "x"
    return (
        f"{safe_component(keyword)}_{scene_tag(scene_id)}_{provider_part}-{id_part}"
        f"_{width}x{height}.{ext.lstrip('.').lower()}"
    )


@dataclass(frozen=True)
class ParsedName:
    """Metadata recovered from an installed file name."""

    keyword: str
    tag: str
    provider: str
    source_id: str
    width: int
    height: int


def parse_filename(stem: str) -> ParsedName | None:
    """Recover metadata from a file name stem (no extension).

    Underscores in the keyword part are turned back into spaces.

    Returns:
        ParsedName, or None when the name does not follow the scheme
    """
    m = FILENAME_RE.match(stem)
    if not m:
        return None
    return ParsedName(
        keyword=m.group("keyword").replace("_", " "),
        tag=m.group("tag"),
        provider=m.group("provider"),
        source_id=m.group("source_id"),
        width=int(m.group("width")),
        height=int(m.group("height")),
    )


def guess_extension(url: str, default: str) -> str:
    """File extension from a URL path, falling back to ``default``."""
    m = re.search(r"\.([a-z0-9]{2,4})(?:\?|#|$)", url, re.IGNORECASE)
    return m.group(1).lower() if m else default


__all__ = [
    "FILENAME_RE",
    "ParsedName",
    "build_filename",
    "guess_extension",
    "parse_filename",
    "safe_component",
    "scene_tag",
]
