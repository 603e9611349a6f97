"""PostgREST-backed data service (Supabase-style REST interface).

Every read is a GET against ``/rest/v1/<table>`` with PostgREST filter
parameters (``school_id=eq.<id>``).  Counts use ``Prefer: count=exact``
on a HEAD request and read the total from ``Content-Range``; dashboard
counters come from the ``get_school_dashboard_stats`` RPC.

Rows are mapped into the frozen records in ``models.records`` right at
the boundary, so nothing past this module ever sees a raw dict.

The same class also serves staff profiles (the ``teachers`` table holds
both the role tags and the scope assignments).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from schoolhub.core.config import Settings
from schoolhub.models.records import (
    AdminRecord,
    DashboardStats,
    StaffMember,
    StudentRecord,
    Subject,
    Subscription,
    TeachingAssignment,
    Tenant,
    Term,
)
from schoolhub.models.staff_profile import StaffProfile
from schoolhub.repos.school_data_repo import RemoteDataError

logger = logging.getLogger(__name__)

_REST = "/rest/v1"


def _eq(value: str) -> str:
    return f"eq.{value}"


def response_error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


def _nested_name(row: dict[str, Any], relation: str) -> str | None:
    nested = row.get(relation)
    if isinstance(nested, dict):
        return nested.get("name")
    return None


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_tenant(row: dict[str, Any]) -> Tenant:
    return Tenant(
        id=str(row["id"]),
        name=row.get("name") or "",
        status=row.get("status") or "Active",
    )


def _row_to_student(row: dict[str, Any]) -> StudentRecord:
    return StudentRecord(
        id=str(row["id"]),
        major=row.get("major"),
        group_desc=row.get("group_desc"),
        class_desc=row.get("class_desc"),
        section_name=row.get("section_name"),
        academic_year=row.get("academic_year"),
        name=row.get("name") or row.get("full_name"),
        status=row.get("status") or "Active",
    )


def _row_to_staff(row: dict[str, Any]) -> StaffMember:
    return StaffMember(
        id=str(row["id"]),
        principal_id=row.get("user_id"),
        name=row.get("name") or row.get("full_name") or "",
        tenant_id=row.get("school_id"),
        email=row.get("email"),
    )


def _row_to_admin(row: dict[str, Any]) -> AdminRecord:
    return AdminRecord(
        id=str(row["id"]),
        name=row.get("name") or row.get("full_name") or "",
        tenant_id=row.get("school_id"),
        tenant_name=_nested_name(row, "schools"),
    )


def _row_to_subject(row: dict[str, Any]) -> Subject:
    return Subject(id=str(row["id"]), name=row.get("name") or "", tenant_id=row.get("school_id"))


def _row_to_subscription(row: dict[str, Any]) -> Subscription:
    return Subscription(
        id=str(row["id"]),
        tenant_id=str(row.get("school_id") or ""),
        plan=str(row.get("plan") or row.get("plan_id") or ""),
        status=row.get("status") or "active",
        tenant_name=_nested_name(row, "schools"),
    )


def _row_to_assignment(row: dict[str, Any]) -> TeachingAssignment:
    return TeachingAssignment(
        id=str(row["id"]),
        staff_id=str(row.get("teacher_id") or ""),
        subject_id=row.get("subject_id"),
        academic_year=row.get("academic_year") or "",
        term_id=row.get("term_id"),
        major=row.get("major"),
        group_desc=row.get("group_desc"),
        class_desc=row.get("class_desc"),
        section_name=row.get("section_name"),
        subject_name=_nested_name(row, "subjects"),
    )


def _row_to_term(row: dict[str, Any]) -> Term:
    return Term(
        id=str(row["id"]),
        name=row.get("name") or "",
        academic_year=row.get("academic_year") or "",
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]),
    )


def _row_to_stats(row: dict[str, Any] | None) -> DashboardStats:
    if not row:
        return DashboardStats()
    return DashboardStats(
        total_students=int(row.get("total_students") or 0),
        total_teachers=int(row.get("total_teachers") or 0),
        active_assessments=int(row.get("active_assessments") or 0),
        average_performance=float(row.get("average_performance") or 0.0),
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RestSchoolDataRepo:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> RestSchoolDataRepo:
        if settings.data_api_url is None:
            raise ValueError("DATA_API_URL is required for the REST data service")
        headers = {}
        if settings.data_api_key:
            headers["apikey"] = settings.data_api_key
            headers["Authorization"] = f"Bearer {settings.data_api_key}"
        client = httpx.AsyncClient(
            base_url=settings.data_api_url,
            headers=headers,
            timeout=settings.data_api_timeout,
        )
        return cls(client)

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- transport helpers ---

    def _check(self, resp: httpx.Response, what: str) -> None:
        if resp.is_success:
            return
        message = response_error_message(resp)
        logger.warning("Data service %s failed (%d): %s", what, resp.status_code, message)
        raise RemoteDataError(message)

    async def _select(
        self, table: str, params: dict[str, str] | None = None
    ) -> list[dict[str, Any]]:
        query = {"select": "*", **(params or {})}
        try:
            resp = await self._client.get(f"{_REST}/{table}", params=query)
        except httpx.HTTPError as exc:
            raise RemoteDataError(f"{table}: {exc}") from exc
        self._check(resp, f"select {table}")
        return resp.json()

    async def _count(self, table: str, params: dict[str, str]) -> int:
        try:
            resp = await self._client.head(
                f"{_REST}/{table}",
                params={"select": "id", **params},
                headers={"Prefer": "count=exact"},
            )
        except httpx.HTTPError as exc:
            raise RemoteDataError(f"{table}: {exc}") from exc
        self._check(resp, f"count {table}")
        # Content-Range: 0-24/57 or */0
        total = resp.headers.get("content-range", "").rpartition("/")[2]
        return int(total) if total.isdigit() else 0

    # --- tenant tier ---

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        rows = await self._select("schools", {"id": _eq(tenant_id)})
        return _row_to_tenant(rows[0]) if rows else None

    async def list_tenants(self) -> list[Tenant]:
        return [_row_to_tenant(r) for r in await self._select("schools")]

    async def count_students(self, tenant_id: str) -> int:
        return await self._count("students", {"school_id": _eq(tenant_id)})

    async def count_staff(self, tenant_id: str) -> int:
        return await self._count("teachers", {"school_id": _eq(tenant_id)})

    async def list_subscriptions(self) -> list[Subscription]:
        rows = await self._select("subscriptions", {"select": "*,schools(name)"})
        return [_row_to_subscription(r) for r in rows]

    async def list_admins(self, tenant_id: str | None) -> list[AdminRecord]:
        params = {"select": "*,schools(name)"}
        if tenant_id is not None:
            params["school_id"] = _eq(tenant_id)
        return [_row_to_admin(r) for r in await self._select("admins", params)]

    async def list_staff(self, tenant_id: str) -> list[StaffMember]:
        rows = await self._select("teachers", {"school_id": _eq(tenant_id)})
        return [_row_to_staff(r) for r in rows]

    async def list_subjects(self, tenant_id: str) -> list[Subject]:
        rows = await self._select("subjects", {"school_id": _eq(tenant_id)})
        return [_row_to_subject(r) for r in rows]

    # --- year tier ---

    async def list_students(
        self, tenant_id: str, academic_year: str
    ) -> list[StudentRecord]:
        rows = await self._select(
            "students",
            {"school_id": _eq(tenant_id), "academic_year": _eq(academic_year)},
        )
        return [_row_to_student(r) for r in rows]

    async def get_dashboard_stats(
        self, tenant_id: str, academic_year: str
    ) -> DashboardStats:
        try:
            resp = await self._client.post(
                f"{_REST}/rpc/get_school_dashboard_stats",
                json={"p_school_id": tenant_id, "p_academic_year": academic_year},
            )
        except httpx.HTTPError as exc:
            raise RemoteDataError(f"dashboard stats: {exc}") from exc
        self._check(resp, "dashboard stats")
        body = resp.json()
        # Set-returning functions come back as a one-element list.
        if isinstance(body, list):
            body = body[0] if body else None
        return _row_to_stats(body)

    # --- term tier ---

    async def list_teaching_assignments(
        self, tenant_id: str, academic_year: str, term_id: str
    ) -> list[TeachingAssignment]:
        rows = await self._select(
            "teacher_assignments",
            {
                "select": "*,subjects(name)",
                "school_id": _eq(tenant_id),
                "academic_year": _eq(academic_year),
                "or": f"(term_id.eq.{term_id},term_id.is.null)",
            },
        )
        return [_row_to_assignment(r) for r in rows]

    # --- year / term catalog ---

    async def list_student_years(self, tenant_id: str) -> list[str]:
        rows = await self._select(
            "students", {"select": "academic_year", "school_id": _eq(tenant_id)}
        )
        return sorted({r["academic_year"] for r in rows if r.get("academic_year")})

    async def list_registered_years(self, tenant_id: str) -> list[str]:
        rows = await self._select(
            "academic_years", {"select": "year", "school_id": _eq(tenant_id)}
        )
        return [r["year"] for r in rows if r.get("year")]

    async def add_registered_year(self, tenant_id: str, academic_year: str) -> None:
        try:
            resp = await self._client.post(
                f"{_REST}/academic_years",
                json={"school_id": tenant_id, "year": academic_year},
                headers={"Prefer": "return=minimal"},
            )
        except httpx.HTTPError as exc:
            raise RemoteDataError(f"academic_years: {exc}") from exc
        self._check(resp, "insert academic_years")

    async def list_terms(self, tenant_id: str, academic_year: str) -> list[Term]:
        rows = await self._select(
            "terms",
            {
                "school_id": _eq(tenant_id),
                "academic_year": _eq(academic_year),
                "order": "start_date.asc",
            },
        )
        return [_row_to_term(r) for r in rows]

    # --- staff profiles ---

    async def get_profile(self, principal_id: str) -> StaffProfile | None:
        rows = await self._select(
            "teachers", {"select": "role,assignments", "user_id": _eq(principal_id)}
        )
        if not rows:
            return None
        row = rows[0]
        roles = row.get("role")
        if isinstance(roles, str):
            roles = [roles]
        return StaffProfile.from_raw(
            principal_id=principal_id,
            roles=roles if isinstance(roles, list) else None,
            assignments=row.get("assignments"),
        )
