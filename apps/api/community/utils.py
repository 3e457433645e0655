"""
Shared helpers: row serialization, display names, slugs, mentions
"""
import re
import uuid
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import inspect

DEFAULT_DISPLAY_NAME = "Member"
DEFAULT_INITIAL = "M"

MENTION_PATTERN = re.compile(r"@([\w\u0590-\u05FF]+)")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends without tz support"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _json_value(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    return value


def row_to_dict(row: Any, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Serialize a mapped instance's column attributes into JSON-safe values"""
    if row is None:
        return None
    skip = set(exclude)
    mapper = inspect(row).mapper
    return {
        attr.key: _json_value(getattr(row, attr.key))
        for attr in mapper.column_attrs
        if attr.key not in skip
    }


def get_display_name(profile: Any) -> str:
    """display_name, then first (and last) name, then nickname, then a generic label"""
    if profile is None:
        return DEFAULT_DISPLAY_NAME

    def field(name: str) -> Optional[str]:
        if isinstance(profile, dict):
            return profile.get(name)
        return getattr(profile, name, None)

    if field("display_name"):
        return field("display_name")
    if field("first_name"):
        if field("last_name"):
            return f"{field('first_name')} {field('last_name')}"
        return field("first_name")
    if field("nickname"):
        return field("nickname")
    return DEFAULT_DISPLAY_NAME


def get_initials(name: Optional[str]) -> str:
    if not name or not name.strip():
        return DEFAULT_INITIAL
    parts = name.strip().split()
    if len(parts) == 1:
        return parts[0][0].upper()
    return (parts[0][0] + parts[-1][0]).upper()


def generate_slug(name: str) -> str:
    slug = name.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def extract_mentions(content: str) -> List[str]:
    """Unique @mention tokens in order of appearance"""
    seen: List[str] = []
    for match in MENTION_PATTERN.findall(content or ""):
        if match.lower() not in [m.lower() for m in seen]:
            seen.append(match)
    return seen


def split_technologies(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return [str(item).strip() for item in items if str(item).strip()]
