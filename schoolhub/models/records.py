"""Typed domain records as delivered by the remote data collaborator.

The orchestration layer never edits these; it only groups, counts and
republishes them.  Field names follow the remote tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True, slots=True)
class StudentRecord:
    id: str
    major: str | None
    group_desc: str | None
    class_desc: str | None
    section_name: str | None
    academic_year: str | None = None
    name: str | None = None
    status: str = "Active"

    def is_placed(self) -> bool:
        """True when all four placement fields are present."""
        return bool(
            self.major and self.group_desc and self.class_desc and self.section_name
        )


@dataclass(frozen=True, slots=True)
class Tenant:
    id: str
    name: str
    status: str = "Active"
    student_count: int = 0
    staff_count: int = 0


@dataclass(frozen=True, slots=True)
class StaffMember:
    id: str
    principal_id: str | None
    name: str
    tenant_id: str | None = None
    email: str | None = None


@dataclass(frozen=True, slots=True)
class AdminRecord:
    id: str
    name: str
    tenant_id: str | None = None
    tenant_name: str | None = None


@dataclass(frozen=True, slots=True)
class Subject:
    id: str
    name: str
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class Subscription:
    id: str
    tenant_id: str
    plan: str
    status: str = "active"
    tenant_name: str | None = None


@dataclass(frozen=True, slots=True)
class TeachingAssignment:
    id: str
    staff_id: str
    subject_id: str | None
    academic_year: str
    term_id: str | None = None
    major: str | None = None
    group_desc: str | None = None
    class_desc: str | None = None
    section_name: str | None = None
    subject_name: str | None = None


@dataclass(frozen=True, slots=True)
class DashboardStats:
    total_students: int = 0
    total_teachers: int = 0
    active_assessments: int = 0
    average_performance: float = 0.0


@dataclass(frozen=True, slots=True)
class Term:
    id: str
    name: str
    academic_year: str
    start_date: date
    end_date: date

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date
