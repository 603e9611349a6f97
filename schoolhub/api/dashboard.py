"""Dashboard endpoints.

A thin facade over the process-wide DashboardStore: GETs read the
published state, POSTs call the store's mutation entry points and return
the resulting state.

Status mapping:
  422  role tag outside the vocabulary, unknown year or term
  409  academic year could not be registered
  502  the identity or data service failed while re-reading the session

A role that is valid but not held is not an error: the switch is a no-op
and the response says ``applied: false``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from schoolhub.api.dependencies import Store
from schoolhub.models.roles import UnknownRoleError, parse_role
from schoolhub.models.scope import ClassTupleList, MajorList, Scope
from schoolhub.repos.school_data_repo import RemoteDataError
from schoolhub.services.dashboard_store import DashboardSnapshot
from schoolhub.services.hierarchy import ALL

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"])


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ScopeOut(BaseModel):
    kind: str
    majors: list[str] = Field(default_factory=list)
    classes: list[list[str]] = Field(default_factory=list)


class TenantOut(BaseModel):
    id: str
    name: str
    status: str
    student_count: int
    staff_count: int


class TermOut(BaseModel):
    id: str
    name: str
    start_date: str
    end_date: str


class StatsOut(BaseModel):
    total_students: int
    total_teachers: int
    active_assessments: int
    average_performance: float


class DashboardOut(BaseModel):
    principal_id: str | None
    tenant_id: str | None
    available_roles: list[str]
    active_role: str | None
    scope: ScopeOut
    academic_year: str | None
    available_years: list[str]
    term: TermOut | None
    available_terms: list[TermOut]
    tenant: TenantOut | None
    tenants: list[TenantOut]
    subscription_count: int
    admin_count: int
    staff_count: int
    subject_count: int
    student_count: int
    teaching_assignment_count: int
    dashboard_stats: StatsOut
    tier_states: dict[str, str]
    is_loading: bool


class ClassNodeOut(BaseModel):
    id: str
    name: str
    major: str
    group: str
    class_desc: str
    section: str
    student_count: int


class StructureOut(BaseModel):
    majors: list[str]
    class_nodes: list[ClassNodeOut]
    student_count: int
    unplaced_count: int


class RoleSwitchOut(BaseModel):
    applied: bool
    active_role: str | None
    sync_status: str
    sync_error: str | None = None


class ActiveRoleIn(BaseModel):
    role: str


class YearIn(BaseModel):
    academic_year: str


class TermIn(BaseModel):
    term_id: str


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------


def _scope_out(scope: Scope) -> ScopeOut:
    if isinstance(scope, MajorList):
        return ScopeOut(kind=scope.kind, majors=sorted(scope.majors))
    if isinstance(scope, ClassTupleList):
        return ScopeOut(kind=scope.kind, classes=[list(t) for t in sorted(scope.tuples)])
    return ScopeOut(kind=scope.kind)


def _tenant_out(tenant) -> TenantOut:
    return TenantOut(
        id=tenant.id,
        name=tenant.name,
        status=tenant.status,
        student_count=tenant.student_count,
        staff_count=tenant.staff_count,
    )


def _term_out(term) -> TermOut:
    return TermOut(
        id=term.id,
        name=term.name,
        start_date=term.start_date.isoformat(),
        end_date=term.end_date.isoformat(),
    )


def _dashboard_out(snap: DashboardSnapshot) -> DashboardOut:
    stats = snap.dashboard_stats
    return DashboardOut(
        principal_id=snap.principal_id,
        tenant_id=snap.tenant_id,
        available_roles=[r.value for r in snap.available_roles],
        active_role=snap.active_role.value if snap.active_role else None,
        scope=_scope_out(snap.scope),
        academic_year=snap.academic_year,
        available_years=list(snap.available_years),
        term=_term_out(snap.term) if snap.term else None,
        available_terms=[_term_out(t) for t in snap.available_terms],
        tenant=_tenant_out(snap.tenant) if snap.tenant else None,
        tenants=[_tenant_out(t) for t in snap.tenants],
        subscription_count=len(snap.subscriptions),
        admin_count=len(snap.admins),
        staff_count=len(snap.staff),
        subject_count=len(snap.subjects),
        student_count=len(snap.students),
        teaching_assignment_count=len(snap.teaching_assignments),
        dashboard_stats=StatsOut(
            total_students=stats.total_students,
            total_teachers=stats.total_teachers,
            active_assessments=stats.active_assessments,
            average_performance=stats.average_performance,
        ),
        tier_states={name: state.value for name, state in snap.tier_states.items()},
        is_loading=snap.is_loading,
    )


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------


@router.get("", response_model=DashboardOut)
def get_dashboard(store: Store) -> DashboardOut:
    return _dashboard_out(store.snapshot())


@router.get("/structure", response_model=StructureOut)
def get_structure(store: Store) -> StructureOut:
    structure = store.class_structure()
    return StructureOut(
        majors=list(structure.majors),
        class_nodes=[
            ClassNodeOut(
                id=n.id,
                name=n.name,
                major=n.major,
                group=n.group,
                class_desc=n.class_desc,
                section=n.section,
                student_count=n.student_count,
            )
            for n in structure.class_nodes
        ],
        student_count=structure.student_count,
        unplaced_count=structure.unplaced_count,
    )


@router.get("/groups", response_model=list[str])
def get_groups(store: Store, major: str = Query(default=ALL)) -> list[str]:
    return store.class_structure().get_groups(major)


@router.get("/class-descs", response_model=list[str])
def get_class_descs(
    store: Store,
    major: str = Query(default=ALL),
    group: str = Query(default=ALL),
) -> list[str]:
    return store.class_structure().get_class_descs(major, group)


@router.get("/sections", response_model=list[str])
def get_sections(
    store: Store,
    major: str = Query(default=ALL),
    group: str = Query(default=ALL),
    class_desc: str = Query(default=ALL),
) -> list[str]:
    return store.class_structure().get_sections(major, group, class_desc)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@router.post("/sync", response_model=DashboardOut)
async def sync_session(store: Store) -> DashboardOut:
    try:
        await store.sync()
    except RemoteDataError as e:
        logger.warning("Session sync failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)
        ) from None
    return _dashboard_out(store.snapshot())


@router.post("/active-role", response_model=RoleSwitchOut)
async def switch_active_role(body: ActiveRoleIn, store: Store) -> RoleSwitchOut:
    try:
        role = parse_role(body.role)
    except UnknownRoleError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from None

    switch = await store.switch_active_role(role)
    outcome = await switch.outcome()
    active = store.active_role
    return RoleSwitchOut(
        applied=switch.applied,
        active_role=active.value if active else None,
        sync_status=outcome.status.value,
        sync_error=outcome.error,
    )


@router.post("/year", response_model=DashboardOut)
async def change_year(body: YearIn, store: Store) -> DashboardOut:
    if not await store.change_year(body.academic_year):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="unknown academic year",
        )
    return _dashboard_out(store.snapshot())


@router.post("/years", response_model=DashboardOut, status_code=status.HTTP_201_CREATED)
async def add_year(body: YearIn, store: Store) -> DashboardOut:
    if not await store.add_year(body.academic_year):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="academic year not registered",
        )
    return _dashboard_out(store.snapshot())


@router.post("/term", response_model=DashboardOut)
async def change_term(body: TermIn, store: Store) -> DashboardOut:
    if not await store.change_term(body.term_id):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="unknown term",
        )
    return _dashboard_out(store.snapshot())


@router.post("/refetch", response_model=DashboardOut)
async def refetch(store: Store) -> DashboardOut:
    await store.refetch()
    return _dashboard_out(store.snapshot())
