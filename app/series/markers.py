"""Parse series identity embedded in event descriptions and meta blobs.

Older clients could not rely on a structured column for series identity, so
they embedded a JSON fragment in the description between two sentinels:

    Weekly lab session
    [META]{"templateId": "9b1c...", "repeatOption": "weekly"}[META]

Rows written by newer code carry the same keys in the ``meta`` JSON column
instead. Both spell the keys inconsistently (camelCase, snake_case, all
lowercase), so lookups go through the alias tables below.
"""
import json
import re

META_SENTINEL = "[META]"

_META_BLOCK = re.compile(r"\[META\]([\s\S]*?)\[META\]")

IDENTITY_KEYS = ("templateId", "template_id", "seriesId", "series_id")
REPEAT_KEYS = ("repeatOption", "repeat_option", "repeatoption")


def parse_meta_block(description: str | None) -> dict | None:
    """
    Extract the first ``[META]...[META]`` JSON block from a description.

    Returns None when there is no block or it is not a JSON object.
    """
    if not description:
        return None

    match = _META_BLOCK.search(description)
    if not match:
        return None

    try:
        parsed = json.loads(match.group(1))
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def strip_meta_block(description: str | None) -> str | None:
    """Remove any ``[META]`` block, returning None if nothing else remains."""
    if not description:
        return description
    cleaned = _META_BLOCK.sub("", description).strip()
    return cleaned or None


def _first_value(data: dict | None, keys: tuple[str, ...]) -> str | None:
    if not isinstance(data, dict):
        return None
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def identity_from(data: dict | None) -> str | None:
    """Template/series identifier carried by a meta dict, if any."""
    return _first_value(data, IDENTITY_KEYS)


def repeat_option_from(data: dict | None) -> str | None:
    """Repeat option carried by a meta dict, if any."""
    return _first_value(data, REPEAT_KEYS)
