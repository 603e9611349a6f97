from __future__ import annotations

import asyncio
import sys
from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from schoolhub.api.dependencies import get_store
from schoolhub.main import app
from schoolhub.models.principal import Principal
from schoolhub.models.records import (
    AdminRecord,
    StaffMember,
    StudentRecord,
    Subject,
    TeachingAssignment,
    Tenant,
    Term,
)
from schoolhub.repos.auth_repo import InMemoryAuthProvider
from schoolhub.repos.school_data_repo import InMemorySchoolDataRepo
from schoolhub.repos.staff_profile_repo import InMemoryStaffProfileRepo
from schoolhub.services.dashboard_store import DashboardStore
from schoolhub.services.local_cache import InMemoryLocalCache
from schoolhub.services.notifications import RecordingNotifier

# Ensure repo root is on sys.path so `import schoolhub` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TENANT_ID = "school-1"
YEAR_CURRENT = "2024-2025"
YEAR_PREVIOUS = "2023-2024"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_student(
    sid: str,
    major: str | None = "Science",
    group: str | None = "G1",
    class_desc: str | None = "Grade 10",
    section: str | None = "A",
    year: str = YEAR_CURRENT,
) -> StudentRecord:
    return StudentRecord(
        id=sid,
        major=major,
        group_desc=group,
        class_desc=class_desc,
        section_name=section,
        academic_year=year,
        name=f"Student {sid}",
    )


def make_principal(
    role: str | None = "teacher",
    *,
    principal_id: str = "user-1",
    tenant_id: str | None = TENANT_ID,
    remembered_role: str | None = None,
) -> Principal:
    return Principal(
        principal_id=principal_id,
        declared_role=role,
        tenant_id=tenant_id,
        remembered_role=remembered_role,
    )


def make_term(tid: str, year: str, start: date, end: date) -> Term:
    return Term(id=tid, name=tid.upper(), academic_year=year, start_date=start, end_date=end)


def seed_school(repo: InMemorySchoolDataRepo) -> None:
    """One tenant, two academic years, two terms in the current year."""
    repo.add_tenant(Tenant(id=TENANT_ID, name="Cedar High"))
    repo.add_tenant(Tenant(id="school-2", name="Oak Academy"))
    repo.add_students(
        TENANT_ID,
        [
            make_student("s1", "Science", "G1", "Grade 10", "A"),
            make_student("s2", "Science", "G1", "Grade 10", "B"),
            make_student("s3", "Arts", "G2", "Grade 11", "A"),
            make_student("s4", "Science", "G1", "Grade 10", "A", year=YEAR_PREVIOUS),
        ],
    )
    repo.admins.append(AdminRecord(id="a1", name="Ada", tenant_id=TENANT_ID))
    repo.staff.append(
        StaffMember(id="t1", principal_id="user-1", name="Tess", tenant_id=TENANT_ID)
    )
    repo.subjects.append(Subject(id="subj-1", name="Physics", tenant_id=TENANT_ID))
    repo.add_terms(
        TENANT_ID,
        YEAR_CURRENT,
        [
            make_term("term-1", YEAR_CURRENT, date(2024, 9, 1), date(2024, 12, 20)),
            make_term("term-2", YEAR_CURRENT, date(2025, 1, 6), date(2025, 6, 30)),
        ],
    )
    repo.add_assignments(
        TENANT_ID,
        [
            TeachingAssignment(
                id="ta-1",
                staff_id="t1",
                subject_id="subj-1",
                academic_year=YEAR_CURRENT,
                term_id="term-1",
            ),
            TeachingAssignment(
                id="ta-2",
                staff_id="t1",
                subject_id="subj-1",
                academic_year=YEAR_CURRENT,
                term_id="term-2",
            ),
            TeachingAssignment(
                id="ta-3",
                staff_id="t1",
                subject_id="subj-1",
                academic_year=YEAR_CURRENT,
            ),
        ],
    )


# ---------------------------------------------------------------------------
# Controllable remote data service
# ---------------------------------------------------------------------------


class GatedSchoolDataRepo(InMemorySchoolDataRepo):
    """In-memory data service whose calls can be held open or made to fail.

    ``hold("list_students", TENANT_ID, "2024-2025")`` returns an Event; the
    matching call blocks until it is set.  A gate registered with the
    method name only holds every call of that method.  Events must be
    created inside the running loop, i.e. from within the test coroutine.
    """

    def __init__(self) -> None:
        super().__init__()
        self.gates: dict[tuple, asyncio.Event] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple] = []

    def hold(self, method: str, *args: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[(method, *args)] = gate
        return gate

    def fail(self, method: str, exc: Exception) -> None:
        self.failures[method] = exc

    def called(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    async def _enter(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        gate = self.gates.get((method, *args)) or self.gates.get((method,))
        if gate is not None:
            await gate.wait()
        exc = self.failures.get(method)
        if exc is not None:
            raise exc

    async def get_tenant(self, tenant_id):
        await self._enter("get_tenant", tenant_id)
        return await super().get_tenant(tenant_id)

    async def list_tenants(self):
        await self._enter("list_tenants")
        return await super().list_tenants()

    async def list_admins(self, tenant_id):
        await self._enter("list_admins", tenant_id)
        return await super().list_admins(tenant_id)

    async def list_staff(self, tenant_id):
        await self._enter("list_staff", tenant_id)
        return await super().list_staff(tenant_id)

    async def list_students(self, tenant_id, academic_year):
        await self._enter("list_students", tenant_id, academic_year)
        return await super().list_students(tenant_id, academic_year)

    async def list_teaching_assignments(self, tenant_id, academic_year, term_id):
        await self._enter("list_teaching_assignments", tenant_id, academic_year, term_id)
        return await super().list_teaching_assignments(tenant_id, academic_year, term_id)

    async def list_student_years(self, tenant_id):
        await self._enter("list_student_years", tenant_id)
        return await super().list_student_years(tenant_id)

    async def list_terms(self, tenant_id, academic_year):
        await self._enter("list_terms", tenant_id, academic_year)
        return await super().list_terms(tenant_id, academic_year)


async def settle() -> None:
    """Let every ready task run until it blocks again."""
    for _ in range(20):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def repo() -> GatedSchoolDataRepo:
    r = GatedSchoolDataRepo()
    seed_school(r)
    return r


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def local_cache() -> InMemoryLocalCache:
    return InMemoryLocalCache()


@pytest.fixture
def auth() -> InMemoryAuthProvider:
    return InMemoryAuthProvider()


@pytest.fixture
def profiles() -> InMemoryStaffProfileRepo:
    return InMemoryStaffProfileRepo()


@pytest.fixture
def store(auth, profiles, repo, notifier, local_cache) -> DashboardStore:
    return DashboardStore(
        auth=auth,
        profiles=profiles,
        repo=repo,
        notifier=notifier,
        local_cache=local_cache,
    )


@pytest.fixture(autouse=True)
def reset_dependency_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client(store: DashboardStore) -> TestClient:
    app.dependency_overrides[get_store] = lambda: store
    return TestClient(app)
