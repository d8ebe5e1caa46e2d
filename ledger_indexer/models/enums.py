"""Contract enum indices -> stored strings.

The catalog contract emits `category` and `difficulty` as uint8 enum
indices.  An index outside the table below means the contract was
upgraded without the indexer: strict mode raises, lenient mode stores
the catch-all bucket and logs a warning.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

CATEGORIES: tuple[str, ...] = (
    "Programming",
    "Design",
    "Business",
    "Marketing",
    "DataScience",
    "Finance",
    "Healthcare",
    "Language",
    "Arts",
    "Mathematics",
    "Science",
    "Engineering",
    "Technology",
    "Education",
    "Psychology",
    "Culinary",
    "PersonalDevelopment",
    "Legal",
    "Sports",
    "Other",
)

DIFFICULTIES: tuple[str, ...] = ("Beginner", "Intermediate", "Advanced")

CATEGORY_FALLBACK = "Other"
DIFFICULTY_FALLBACK = "Unknown"


class EnumMappingError(ValueError):
    def __init__(self, enum_name: str, index: int, size: int) -> None:
        super().__init__(f"{enum_name} index {index} outside 0..{size - 1}")
        self.enum_name = enum_name
        self.index = index


def _lookup(
    enum_name: str, table: tuple[str, ...], index: int, fallback: str, strict: bool
) -> str:
    if 0 <= index < len(table):
        return table[index]
    if strict:
        raise EnumMappingError(enum_name, index, len(table))
    logger.warning(
        "Unknown %s index %d; storing %r", enum_name, index, fallback
    )
    return fallback


def category_name(index: int, *, strict: bool) -> str:
    return _lookup("category", CATEGORIES, index, CATEGORY_FALLBACK, strict)


def difficulty_name(index: int, *, strict: bool) -> str:
    return _lookup("difficulty", DIFFICULTIES, index, DIFFICULTY_FALLBACK, strict)
