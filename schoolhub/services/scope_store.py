from __future__ import annotations

from collections.abc import Sequence

from schoolhub.models.records import StudentRecord
from schoolhub.models.roles import Role
from schoolhub.models.scope import (
    UNRESTRICTED,
    ClassTupleList,
    MajorList,
    Scope,
    Unrestricted,
)
from schoolhub.models.staff_profile import StaffProfile


def get_scope(active_role: Role | None, staff_profile: StaffProfile | None) -> Scope:
    """Look up the Scope the active role is restricted to.

    No role, no profile, or no assignment entry for the role means no
    restriction.  Explicit classes win over majors when an assignment
    carries both, being the narrower grant.  Subject-only assignments do
    not restrict the student roster.  A role whose own assignment could
    not be parsed admits nobody.
    """
    if active_role is None or staff_profile is None:
        return UNRESTRICTED
    if staff_profile.is_rejected(active_role.value):
        return ClassTupleList(tuples=frozenset())
    assignment = staff_profile.assignment_for(active_role.value)
    if assignment is None:
        return UNRESTRICTED
    if assignment.classes:
        return ClassTupleList(tuples=frozenset(assignment.classes))
    if assignment.majors:
        return MajorList(majors=frozenset(assignment.majors))
    return UNRESTRICTED


def apply_scope(
    students: Sequence[StudentRecord], scope: Scope
) -> Sequence[StudentRecord]:
    if isinstance(scope, Unrestricted):
        return students
    return [s for s in students if scope.admits(s)]


class ScopeStore:
    """Memoizes ``get_scope`` on (active_role, staff_profile) identity."""

    def __init__(self) -> None:
        self._key: tuple[Role | None, int] | None = None
        self._profile: StaffProfile | None = None
        self._scope: Scope = UNRESTRICTED

    def get_scope(
        self, active_role: Role | None, staff_profile: StaffProfile | None
    ) -> Scope:
        key = (active_role, id(staff_profile))
        if key != self._key or staff_profile is not self._profile:
            self._scope = get_scope(active_role, staff_profile)
            self._key = key
            # Held so the id() in the key cannot be recycled.
            self._profile = staff_profile
        return self._scope
