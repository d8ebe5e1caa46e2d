from __future__ import annotations

import json
from decimal import Decimal

import pytest

from ledger_indexer.models.course import Course, CourseSectionIndex
from ledger_indexer.models.enums import EnumMappingError, category_name, difficulty_name
from ledger_indexer.models.serialization import ENTITY_TYPES, from_record, to_record


def test_record_is_json_safe_and_keeps_big_integers() -> None:
    course = Course(
        id="1",
        creator="0x" + "c" * 40,
        total_revenue=2**256 - 1,
        average_rating=Decimal("4.25"),
    )
    record = to_record(course)
    assert record["average_rating"] == "4.25"
    assert record["total_revenue"] == 2**256 - 1
    assert from_record("Course", json.loads(json.dumps(record))) == course


def test_tuples_come_back_as_tuples() -> None:
    index = CourseSectionIndex(id="1", section_ids=(0, 3, 4))
    restored = from_record("CourseSectionIndex", json.loads(json.dumps(to_record(index))))
    assert restored.section_ids == (0, 3, 4)


def test_missing_and_unknown_fields_are_tolerated() -> None:
    restored = from_record("Course", {"id": "1", "creator": "0x1", "legacy_field": 5})
    assert restored.sections_count == 0


def test_unknown_kind_is_rejected() -> None:
    with pytest.raises(ValueError, match="unknown entity kind"):
        from_record("Nope", {})


def test_every_entity_kind_is_registered() -> None:
    assert len(ENTITY_TYPES) == 16
    assert ENTITY_TYPES["DeferredEvent"].__name__ == "DeferredEvent"


def test_enum_lookup_strict_and_lenient() -> None:
    assert category_name(0, strict=True) == "Programming"
    assert difficulty_name(2, strict=True) == "Advanced"
    with pytest.raises(EnumMappingError, match="category index 20"):
        category_name(20, strict=True)
    assert category_name(20, strict=False) == "Other"
    assert difficulty_name(3, strict=False) == "Unknown"
