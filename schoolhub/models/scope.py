"""Administrative scope attached to the active role.

``Scope`` is a closed union of three variants.  Each variant answers one
question, ``admits(student)``; filtering a roster is just keeping the
students a scope admits, which makes it idempotent by construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Union

from schoolhub.models.records import StudentRecord


class ClassTuple(NamedTuple):
    major: str
    group: str
    class_desc: str
    section: str

    @staticmethod
    def of(student: StudentRecord) -> ClassTuple:
        return ClassTuple(
            student.major or "",
            student.group_desc or "",
            student.class_desc or "",
            student.section_name or "",
        )


@dataclass(frozen=True, slots=True)
class Unrestricted:
    kind: str = "unrestricted"

    def admits(self, student: StudentRecord) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class MajorList:
    majors: frozenset[str]
    kind: str = "major-list"

    def admits(self, student: StudentRecord) -> bool:
        return student.major in self.majors


@dataclass(frozen=True, slots=True)
class ClassTupleList:
    tuples: frozenset[ClassTuple]
    kind: str = "class-list"

    def admits(self, student: StudentRecord) -> bool:
        return ClassTuple.of(student) in self.tuples


Scope = Union[Unrestricted, MajorList, ClassTupleList]

UNRESTRICTED = Unrestricted()
