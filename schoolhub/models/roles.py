"""Role vocabulary and its priority hierarchy.

The declaration order of ``Role`` *is* the hierarchy: earlier members
outrank later ones.  Sorting by ``Role.priority`` is therefore a total
order over the known vocabulary, so two roles never tie.
"""

from __future__ import annotations

from enum import Enum


class UnknownRoleError(ValueError):
    pass


class Role(str, Enum):
    SUPER_ADMIN = "super-admin"
    SCHOOL_ADMIN = "school-admin"
    ACADEMIC_DIRECTOR = "academic-director"
    HEAD_OF_SECTION = "head-of-section"
    SUBJECT_COORDINATOR = "subject-coordinator"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"

    @property
    def priority(self) -> int:
        return _PRIORITY[self]

    @property
    def is_terminal(self) -> bool:
        """Terminal roles never pick up supplementary staff grants."""
        return self in TERMINAL_ROLES

    @property
    def is_school_role(self) -> bool:
        return self in SCHOOL_ROLES


_PRIORITY: dict[Role, int] = {role: idx for idx, role in enumerate(Role)}

TERMINAL_ROLES = frozenset({Role.SUPER_ADMIN, Role.STUDENT, Role.PARENT})

SCHOOL_ADMIN_ROLES = frozenset(
    {
        Role.SCHOOL_ADMIN,
        Role.ACADEMIC_DIRECTOR,
        Role.HEAD_OF_SECTION,
        Role.SUBJECT_COORDINATOR,
    }
)

# Roles whose tenant tier loads the school-scoped collections.
SCHOOL_ROLES = SCHOOL_ADMIN_ROLES | {Role.TEACHER}


def parse_role(raw: str) -> Role:
    """Map a role tag onto the vocabulary, or raise UnknownRoleError."""
    try:
        return Role(raw.strip())
    except (ValueError, AttributeError):
        raise UnknownRoleError(f"unknown role tag {raw!r}") from None


def sort_by_priority(roles) -> tuple[Role, ...]:
    return tuple(sorted(set(roles), key=lambda r: r.priority))
