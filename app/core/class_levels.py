"""
Class ladder of a school: UKG, 1, 2, ... 12.

Pure helpers with no I/O. Promotion moves a student one rung up; 12 is the ceiling.
Labels must match the ladder exactly; request schemas only trim surrounding whitespace.
"""

from typing import Optional, Tuple

from app.core.exceptions import InvalidClassLabel

CLASS_LABELS: Tuple[str, ...] = ("UKG",) + tuple(str(n) for n in range(1, 13))

_RANK = {label: rank for rank, label in enumerate(CLASS_LABELS)}


def validate_class_label(label: object) -> str:
    """Return `label` unchanged if it is on the ladder, else raise InvalidClassLabel."""
    if not isinstance(label, str) or label not in _RANK:
        raise InvalidClassLabel(label)
    return label


def class_sort_key(label: str) -> int:
    """Position of a label in the ladder (UKG first). Unknown labels raise InvalidClassLabel."""
    return _RANK[validate_class_label(label)]


def next_class(current: str) -> Optional[str]:
    """Label of the class a student of `current` is promoted into, or None at Class 12."""
    rank = class_sort_key(current)
    if rank + 1 >= len(CLASS_LABELS):
        return None
    return CLASS_LABELS[rank + 1]
