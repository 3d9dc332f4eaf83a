"""Utility functions for Lychee Notes."""
import re
from typing import Iterable, List, Optional

_WHITESPACE_RUN = re.compile(r"\s+")


def format_tag_name(tag_name: str) -> str:
    """Rewrite a tag name to Capitalised-Hyphen-Form.

    Whitespace runs become hyphens and every hyphen-separated word is
    lower-cased, then capitalised.

    Examples:
        "deep work" -> "Deep-Work"
        "TODO" -> "Todo"
        "read-later" -> "Read-Later"

    Args:
        tag_name: The raw tag name.

    Returns:
        The formatted name.
    """
    hyphenated = _WHITESPACE_RUN.sub("-", tag_name).lower()
    return "-".join(word[:1].upper() + word[1:] for word in hyphenated.split("-"))


def normalize_tag_names(tag_names: Iterable[str], format_names: bool = False) -> List[str]:
    """Clean a list of tag names for storage or search.

    Surrounding whitespace is stripped, empty names are dropped and
    duplicates collapse to their first occurrence. Case is preserved unless
    ``format_names`` is set.

    Args:
        tag_names: Raw tag names.
        format_names: Apply format_tag_name to every name.

    Returns:
        The cleaned names, in input order.
    """
    cleaned = []
    for name in tag_names:
        name = name.strip()
        if not name:
            continue
        if format_names:
            name = format_tag_name(name)
        cleaned.append(name)
    return list(dict.fromkeys(cleaned))


def parse_tag_list(tags: Optional[str]) -> List[str]:
    """Split a comma-separated tag string into trimmed, non-empty names."""
    if not tags:
        return []
    return [t.strip() for t in tags.split(",") if t.strip()]
