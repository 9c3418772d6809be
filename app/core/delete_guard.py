"""
Two-invariant delete gate shared by tree-shaped master data (departments) and
referenced master data (sections referenced by students).

No cascades: the operator has to clean up dependents first.
"""

from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional

from app.core.exceptions import HasDependents, IsProtected

ChildrenIndex = Dict[Hashable, List[Any]]


def build_children_index(
    nodes: Iterable[Any],
    parent_of: Callable[[Any], Optional[Hashable]] = lambda n: getattr(n, "parent_id", None),
) -> ChildrenIndex:
    """parent id -> children, in one pass over the collection. Roots are not indexed."""
    index: ChildrenIndex = {}
    for node in nodes:
        parent = parent_of(node)
        if parent is not None:
            index.setdefault(parent, []).append(node)
    return index


def ensure_deletable(
    node_id: Hashable,
    children: ChildrenIndex,
    *,
    is_protected: bool = False,
    label: str = "Record",
    dependents_label: str = "sub-records",
) -> None:
    """Raise HasDependents if node_id has children, then IsProtected if flagged default."""
    dependents = children.get(node_id) or []
    if dependents:
        raise HasDependents(
            f"This {label.lower()} has {len(dependents)} {dependents_label}. "
            "Please delete or reassign them first."
        )
    if is_protected:
        raise IsProtected(f"This {label.lower()} is a default {label.lower()} and cannot be deleted.")
