from __future__ import annotations

import asyncio

from prometheus_client import REGISTRY

from schoolhub.models.roles import Role
from schoolhub.models.staff_profile import StaffProfile
from schoolhub.repos.auth_repo import InMemoryAuthProvider
from schoolhub.services.local_cache import ACTIVE_ROLE_KEY, InMemoryLocalCache
from schoolhub.services.notifications import RecordingNotifier, Severity
from schoolhub.services.role_resolver import (
    RoleResolver,
    RoleSyncStatus,
    resolve_roles,
    select_active_role,
)
from tests.conftest import make_principal


def _sample(name: str, labels: dict) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels)
    return value if value is not None else 0.0


def _profile(roles=(), **assignments) -> StaffProfile:
    return StaffProfile.from_raw(
        principal_id="user-1",
        roles=list(roles),
        assignments={k.replace("_", "-"): v for k, v in assignments.items()},
    )


# ---- resolve_roles ----


def test_academic_director_supplements_declared_teacher() -> None:
    profile = _profile(["academic-director"], academic_director={"majors": ["Science"]})
    role_set = resolve_roles(make_principal("teacher"), profile)
    assert role_set.roles == (Role.ACADEMIC_DIRECTOR, Role.TEACHER)
    assert select_active_role(role_set, None, None) is Role.ACADEMIC_DIRECTOR


def test_no_principal_gives_empty_role_set() -> None:
    assert len(resolve_roles(None, None)) == 0


def test_terminal_declared_role_ignores_profile() -> None:
    profile = _profile(["school-admin"], school_admin={"majors": ["Science"]})
    role_set = resolve_roles(make_principal("student"), profile)
    assert role_set.roles == (Role.STUDENT,)


def test_supplementary_tag_without_scope_is_not_granted() -> None:
    profile = _profile(["head-of-section"], head_of_section={"majors": []})
    role_set = resolve_roles(make_principal("teacher"), profile)
    assert role_set.roles == (Role.TEACHER,)


def test_assignment_key_alone_grants_role() -> None:
    profile = _profile(subject_coordinator={"subject_id": "subj-1"})
    role_set = resolve_roles(make_principal("teacher"), profile)
    assert Role.SUBJECT_COORDINATOR in role_set


def test_unknown_tags_are_rejected_and_recorded() -> None:
    profile = _profile(["janitor"], janitor={"majors": ["Science"]})
    role_set = resolve_roles(make_principal("wizard"), profile)
    assert role_set.roles == ()
    assert set(role_set.rejected) == {"wizard", "janitor"}


def test_role_set_order_is_stable() -> None:
    profile = _profile(
        ["teacher", "school-admin"],
        school_admin={"majors": ["Science"]},
        head_of_section=[{"major": "Arts"}],
    )
    principal = make_principal("teacher")
    first = resolve_roles(principal, profile)
    assert first.roles == (Role.SCHOOL_ADMIN, Role.HEAD_OF_SECTION, Role.TEACHER)
    assert resolve_roles(principal, profile) == first


# ---- select_active_role ----


def test_select_prefers_remembered_then_cached_then_head() -> None:
    profile = _profile(["school-admin"], school_admin={"majors": ["Science"]})
    role_set = resolve_roles(make_principal("teacher"), profile)

    assert select_active_role(role_set, "teacher", "school-admin") is Role.TEACHER
    assert select_active_role(role_set, None, "teacher") is Role.TEACHER
    assert select_active_role(role_set, "parent", "janitor") is Role.SCHOOL_ADMIN


def test_select_returns_none_for_empty_role_set() -> None:
    assert select_active_role(resolve_roles(None, None), "teacher", "teacher") is None


# ---- RoleResolver ----


def _resolver():
    auth = InMemoryAuthProvider()
    cache = InMemoryLocalCache()
    notifier = RecordingNotifier()
    return RoleResolver(auth, cache, notifier), auth, cache, notifier


def test_unknown_declared_role_without_profile_has_no_active_role() -> None:
    resolver, _, cache, _ = _resolver()

    async def run():
        switch = await resolver.resolve(make_principal("wizard"), None)
        assert switch.applied is False
        assert await cache.get(ACTIVE_ROLE_KEY) is None

    asyncio.run(run())
    assert resolver.active_role is None
    assert len(resolver.role_set) == 0


def test_resolve_caches_and_syncs_new_selection() -> None:
    resolver, auth, cache, _ = _resolver()
    principal = make_principal("teacher")
    auth.sign_in(principal)

    async def run():
        switch = await resolver.resolve(principal, None)
        outcome = await switch.outcome()
        return switch, outcome, await cache.get(ACTIVE_ROLE_KEY)

    switch, outcome, cached = asyncio.run(run())
    assert switch.role is Role.TEACHER
    assert outcome.status is RoleSyncStatus.SYNCED
    assert cached == "teacher"
    assert auth.persisted == [("user-1", "teacher")]


def test_resolve_skips_sync_when_remembered_role_selected() -> None:
    resolver, auth, _, _ = _resolver()

    async def run():
        switch = await resolver.resolve(make_principal("teacher", remembered_role="teacher"), None)
        return await switch.outcome()

    outcome = asyncio.run(run())
    assert outcome.status is RoleSyncStatus.SKIPPED
    assert auth.persisted == []


def test_switch_to_non_member_is_noop() -> None:
    resolver, auth, cache, _ = _resolver()

    async def run():
        await resolver.resolve(make_principal("teacher", remembered_role="teacher"), None)
        switch = await resolver.switch_active_role(Role.SUPER_ADMIN)
        return switch, await switch.outcome(), await cache.get(ACTIVE_ROLE_KEY)

    switch, outcome, cached = asyncio.run(run())
    assert switch.applied is False
    assert outcome.status is RoleSyncStatus.SKIPPED
    assert resolver.active_role is Role.TEACHER
    assert cached == "teacher"
    assert auth.persisted == []


def test_switch_updates_role_cache_and_metric() -> None:
    resolver, auth, cache, _ = _resolver()
    profile = _profile(["school-admin"], school_admin={"majors": ["Science"]})
    principal = make_principal("teacher", remembered_role="school-admin")
    before = _sample("active_role_switches_total", {"role": "teacher"})

    async def run():
        await resolver.resolve(principal, profile)
        switch = await resolver.switch_active_role(Role.TEACHER)
        return switch, await switch.outcome(), await cache.get(ACTIVE_ROLE_KEY)

    switch, outcome, cached = asyncio.run(run())
    assert switch.applied is True
    assert resolver.active_role is Role.TEACHER
    assert cached == "teacher"
    assert outcome.ok
    assert auth.persisted[-1] == ("user-1", "teacher")
    assert _sample("active_role_switches_total", {"role": "teacher"}) - before == 1


def test_sync_failure_is_reported_without_rollback() -> None:
    resolver, auth, _, notifier = _resolver()
    profile = _profile(["school-admin"], school_admin={"majors": ["Science"]})
    principal = make_principal("teacher", remembered_role="school-admin")
    before = _sample("role_sync_total", {"outcome": "failed"})

    async def run():
        await resolver.resolve(principal, profile)
        auth.fail_persist = "identity service unavailable"
        switch = await resolver.switch_active_role(Role.TEACHER)
        return await switch.outcome()

    outcome = asyncio.run(run())
    assert outcome.status is RoleSyncStatus.FAILED
    assert outcome.error == "identity service unavailable"
    assert not outcome.ok
    # No rollback
    assert resolver.active_role is Role.TEACHER
    assert notifier.notices[-1].severity is Severity.ERROR
    assert notifier.titles() == ["Role Switch Failed"]
    assert _sample("role_sync_total", {"outcome": "failed"}) - before == 1
