from datetime import date

import pytest

from app.api.v1.sections.schemas import SectionCreate
from app.core.class_levels import CLASS_LABELS, class_sort_key, next_class, validate_class_label
from app.core.clock import academic_year_label
from app.core.exceptions import InvalidClassLabel


@pytest.mark.parametrize(
    "current, expected",
    [("UKG", "1")] + [(str(n), str(n + 1)) for n in range(1, 12)],
)
def test_next_class_successor(current: str, expected: str) -> None:
    assert next_class(current) == expected


def test_next_class_ceiling() -> None:
    assert next_class("12") is None


@pytest.mark.parametrize("bad", ["LKG", "13", "0", "", "Class 5", None, 5, "ukg", " UKG ", "05"])
def test_unknown_labels_are_rejected(bad) -> None:
    with pytest.raises(InvalidClassLabel):
        next_class(bad)
    with pytest.raises(InvalidClassLabel):
        validate_class_label(bad)


def test_invalid_label_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        validate_class_label("nursery")


def test_labels_pass_through_unchanged() -> None:
    assert [validate_class_label(label) for label in CLASS_LABELS] == list(CLASS_LABELS)


def test_request_schema_only_trims_whitespace() -> None:
    assert SectionCreate(class_name=" 5 ").class_name == "5"
    assert SectionCreate(class_name="ukg").class_name == "ukg"


def test_ladder_order() -> None:
    shuffled = ["10", "2", "UKG", "1", "12"]
    assert sorted(shuffled, key=class_sort_key) == ["UKG", "1", "2", "10", "12"]
    assert CLASS_LABELS[0] == "UKG" and CLASS_LABELS[-1] == "12"
    assert len(CLASS_LABELS) == 13


def test_academic_year_label() -> None:
    assert academic_year_label(date(2025, 6, 1)) == "2025-2026"
