"""Text helpers shared by scoring and candidate filtering."""

from typing import Iterable, List, Optional


def contains_ignore_case(haystack: Optional[str], needle: Optional[str]) -> bool:
    """Case-insensitive substring check.

    A blank needle never matches, so a request without a category name does
    not match every service.

    Example:
        >>> contains_ignore_case("Plumbing Repair", "plumbing")
        True
        >>> contains_ignore_case("Plumbing Repair", "")
        False
    """
    if not haystack or not needle or not needle.strip():
        return False
    return needle.strip().lower() in haystack.lower()


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Strip tags, drop blanks and duplicates while keeping first-seen order."""
    if not tags:
        return []

    seen = set()
    result = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        stripped = tag.strip()
        if stripped and stripped not in seen:
            seen.add(stripped)
            result.append(stripped)
    return result
