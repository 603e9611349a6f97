"""Class structure derived from a flat student roster.

The roster is indexed once into

    major -> {groups}
    (major, group) -> {class descs}
    (major, group, class desc) -> {section: member count}

and every list handed out is sorted, so the same roster and scope always
produce the same structure regardless of input order.

``ALL`` is the "no filter" sentinel used by selector dropdowns.  Lookups
prefix it whenever they return anything; ``majors`` prefixes it only when
there is more than one major to choose between.

Students missing any of major/group/class/section cannot be placed in the
tree and are left out of the structure (``unplaced_count`` reports them).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from urllib.parse import quote

from schoolhub.models.records import StudentRecord
from schoolhub.models.scope import UNRESTRICTED, Scope
from schoolhub.services.scope_store import apply_scope

ALL = "all"


def _node_id(*parts: str) -> str:
    # Parts are percent-encoded so a "/" inside a name cannot shift the
    # boundaries between them.
    return "/".join(quote(p, safe=" ") for p in parts)


@dataclass(frozen=True, slots=True)
class ClassNode:
    id: str
    name: str
    major: str
    group: str
    class_desc: str
    section: str
    student_count: int


def _is_all(value: str | None) -> bool:
    return value is None or value == "" or value == ALL


def _with_all(values) -> list[str]:
    ordered = sorted(values)
    return [ALL, *ordered] if ordered else []


@dataclass(frozen=True)
class ClassStructure:
    majors: tuple[str, ...] = ()
    class_nodes: tuple[ClassNode, ...] = ()
    student_count: int = 0
    unplaced_count: int = 0
    _groups: dict[str, frozenset[str]] = field(default_factory=dict, repr=False)
    _class_descs: dict[tuple[str, str], frozenset[str]] = field(
        default_factory=dict, repr=False
    )
    _sections: dict[tuple[str, str, str], dict[str, int]] = field(
        default_factory=dict, repr=False
    )

    def get_groups(self, major: str | None) -> list[str]:
        if _is_all(major):
            return _with_all(g for groups in self._groups.values() for g in groups)
        return _with_all(self._groups.get(major, ()))

    def get_class_descs(self, major: str | None, group: str | None) -> list[str]:
        return _with_all(
            desc
            for (m, g), descs in self._class_descs.items()
            if (_is_all(major) or m == major) and (_is_all(group) or g == group)
            for desc in descs
        )

    def get_sections(
        self, major: str | None, group: str | None, class_desc: str | None
    ) -> list[str]:
        return _with_all(
            section
            for (m, g, c), sections in self._sections.items()
            if (_is_all(major) or m == major)
            and (_is_all(group) or g == group)
            and (_is_all(class_desc) or c == class_desc)
            for section in sections
        )


EMPTY_STRUCTURE = ClassStructure()


def build_structure(
    students: Sequence[StudentRecord] | None, scope: Scope = UNRESTRICTED
) -> ClassStructure:
    if not students:
        return EMPTY_STRUCTURE

    groups: dict[str, set[str]] = {}
    class_descs: dict[tuple[str, str], set[str]] = {}
    sections: dict[tuple[str, str, str], dict[str, int]] = {}
    placed = 0
    unplaced = 0

    for student in apply_scope(students, scope):
        if not student.is_placed():
            unplaced += 1
            continue
        placed += 1
        major, group = student.major, student.group_desc
        class_desc, section = student.class_desc, student.section_name
        groups.setdefault(major, set()).add(group)
        class_descs.setdefault((major, group), set()).add(class_desc)
        counts = sections.setdefault((major, group, class_desc), {})
        counts[section] = counts.get(section, 0) + 1

    if not placed:
        return ClassStructure(unplaced_count=unplaced)

    nodes = tuple(
        ClassNode(
            id=_node_id(major, group, class_desc, section),
            name=f"{class_desc} - {section}",
            major=major,
            group=group,
            class_desc=class_desc,
            section=section,
            student_count=count,
        )
        for (major, group, class_desc) in sorted(sections)
        for section, count in sorted(sections[(major, group, class_desc)].items())
    )

    majors = sorted(groups)
    return ClassStructure(
        majors=tuple([ALL, *majors] if len(majors) > 1 else majors),
        class_nodes=nodes,
        student_count=placed,
        unplaced_count=unplaced,
        _groups={m: frozenset(g) for m, g in groups.items()},
        _class_descs={k: frozenset(v) for k, v in class_descs.items()},
        _sections={k: dict(v) for k, v in sections.items()},
    )


class HierarchyAggregator:
    """``build_structure`` memoized on the last (roster identity, scope)."""

    def __init__(self) -> None:
        self._students: Sequence[StudentRecord] | None = None
        self._scope: Scope | None = None
        self._structure: ClassStructure = EMPTY_STRUCTURE

    def __call__(
        self, students: Sequence[StudentRecord] | None, scope: Scope = UNRESTRICTED
    ) -> ClassStructure:
        if students is not self._students or scope != self._scope:
            self._structure = build_structure(students, scope)
            self._students = students
            self._scope = scope
        return self._structure
