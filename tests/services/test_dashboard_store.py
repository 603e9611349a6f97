from __future__ import annotations

import asyncio

from schoolhub.models.roles import Role
from schoolhub.models.scope import UNRESTRICTED, ClassTupleList, MajorList
from schoolhub.models.staff_profile import StaffProfile
from schoolhub.services.dashboard_store import DashboardStore
from schoolhub.services.hierarchy import ALL
from schoolhub.services.local_cache import ACTIVE_ROLE_KEY
from schoolhub.services.role_resolver import RoleSyncStatus
from schoolhub.services.tier import TierState
from tests.conftest import TENANT_ID, YEAR_CURRENT, YEAR_PREVIOUS, make_principal


def _director_profile() -> StaffProfile:
    return StaffProfile.from_raw(
        principal_id="user-1",
        roles=["academic-director"],
        assignments={"academic-director": {"majors": ["Science"]}},
    )


def test_sync_resolves_role_scope_and_loads_tiers(store, auth, profiles) -> None:
    auth.sign_in(make_principal("teacher"))
    profiles.add(_director_profile())

    outcome = asyncio.run(store.sync())
    snap = store.snapshot()

    assert snap.available_roles == (Role.ACADEMIC_DIRECTOR, Role.TEACHER)
    assert snap.active_role is Role.ACADEMIC_DIRECTOR
    assert snap.scope == MajorList(majors=frozenset({"Science"}))
    assert snap.academic_year == YEAR_CURRENT
    assert snap.available_years == (YEAR_CURRENT, YEAR_PREVIOUS)
    assert snap.term is not None
    assert set(snap.tier_states.values()) == {TierState.READY}
    assert snap.is_loading is False
    assert outcome.status is RoleSyncStatus.SYNCED
    assert auth.persisted == [("user-1", "academic-director")]

    structure = store.class_structure()
    assert structure.majors == ("Science",)
    assert structure.student_count == 2
    assert [s.id for s in store.scoped_students()] == ["s1", "s2"]


def test_malformed_assignment_entry_keeps_the_rest_of_the_profile(store, auth, profiles) -> None:
    auth.sign_in(make_principal("teacher"))
    profiles.add(
        StaffProfile.from_raw(
            principal_id="user-1",
            roles=None,
            assignments={
                "academic-director": {"majors": ["Science"]},
                "subject-coordinator": {"subjectId": 42},
                "head-of-section": {"classes": [{"major": "Science"}]},
            },
        )
    )

    asyncio.run(store.sync())
    snap = store.snapshot()

    assert snap.available_roles == (
        Role.ACADEMIC_DIRECTOR,
        Role.SUBJECT_COORDINATOR,
        Role.TEACHER,
    )
    assert snap.active_role is Role.ACADEMIC_DIRECTOR
    assert snap.scope == MajorList(majors=frozenset({"Science"}))


def test_malformed_assignment_for_declared_role_admits_no_students(store, auth, profiles) -> None:
    auth.sign_in(make_principal("teacher"))
    profiles.add(
        StaffProfile.from_raw(
            principal_id="user-1",
            roles=None,
            assignments={"teacher": {"classes": [{"major": "Science"}]}},
        )
    )

    asyncio.run(store.sync())
    snap = store.snapshot()

    assert snap.active_role is Role.TEACHER
    assert snap.scope == ClassTupleList(tuples=frozenset())
    assert store.scoped_students() == ()


def test_unknown_declared_role_leaves_everything_idle(store, auth, notifier) -> None:
    auth.sign_in(make_principal("wizard"))
    outcome = asyncio.run(store.sync())
    snap = store.snapshot()

    assert snap.active_role is None
    assert snap.available_roles == ()
    assert set(snap.tier_states.values()) == {TierState.IDLE}
    assert snap.students == ()
    assert outcome.status is RoleSyncStatus.SKIPPED
    assert notifier.notices == []


def test_switch_role_widens_scope_and_reloads_tenant_tier(store, auth, profiles, repo) -> None:
    auth.sign_in(make_principal("teacher"))
    profiles.add(_director_profile())

    async def run():
        await store.sync()
        switch = await store.switch_active_role(Role.TEACHER)
        return switch, await switch.outcome()

    switch, outcome = asyncio.run(run())
    assert switch.applied is True
    assert outcome.ok
    assert store.active_role is Role.TEACHER
    assert store.scope == UNRESTRICTED
    assert store.class_structure().majors == (ALL, "Arts", "Science")
    assert repo.called("get_tenant") == 2
    assert repo.called("list_students") == 1


def test_switch_to_role_not_held_changes_nothing(store, auth, local_cache) -> None:
    auth.sign_in(make_principal("teacher"))

    async def run():
        await store.sync()
        switch = await store.switch_active_role(Role.SCHOOL_ADMIN)
        return switch, await local_cache.get(ACTIVE_ROLE_KEY)

    switch, cached = asyncio.run(run())
    assert switch.applied is False
    assert store.active_role is Role.TEACHER
    assert cached == "teacher"


def test_change_year_reloads_year_and_term_selection(store, auth) -> None:
    auth.sign_in(make_principal("teacher"))

    async def run():
        await store.sync()
        assert await store.change_year("1999-2000") is False
        return await store.change_year(YEAR_PREVIOUS)

    assert asyncio.run(run()) is True
    snap = store.snapshot()
    assert snap.academic_year == YEAR_PREVIOUS
    assert [s.id for s in snap.students] == ["s4"]
    # No terms registered for the previous year.
    assert snap.term is None
    assert snap.tier_states["term"] is TierState.IDLE
    assert snap.teaching_assignments == ()


def test_change_term_reloads_term_tier(store, auth) -> None:
    auth.sign_in(make_principal("teacher"))

    async def run():
        await store.sync()
        return await store.change_term("term-2")

    assert asyncio.run(run()) is True
    assert sorted(a.id for a in store.snapshot().teaching_assignments) == ["ta-2", "ta-3"]


def test_add_year_selects_new_empty_year(store, auth) -> None:
    auth.sign_in(make_principal("school-admin"))

    async def run():
        await store.sync()
        return await store.add_year("2025-2026")

    assert asyncio.run(run()) is True
    snap = store.snapshot()
    assert snap.academic_year == "2025-2026"
    assert snap.students == ()
    assert snap.tier_states["year"] is TierState.READY


def test_sign_out_idles_every_tier(store, auth) -> None:
    auth.sign_in(make_principal("teacher"))

    async def run():
        await store.sync()
        auth.sign_out()
        await store.sync()

    asyncio.run(run())
    snap = store.snapshot()
    assert snap.principal_id is None
    assert snap.active_role is None
    assert snap.academic_year is None
    assert set(snap.tier_states.values()) == {TierState.IDLE}
    assert snap.students == ()


def test_profile_failure_is_reported_and_treated_as_absent(auth, repo, notifier, local_cache) -> None:
    class BrokenProfiles:
        async def get_profile(self, principal_id: str):
            raise RuntimeError("profiles table unavailable")

    store = DashboardStore(
        auth=auth,
        profiles=BrokenProfiles(),
        repo=repo,
        notifier=notifier,
        local_cache=local_cache,
    )
    auth.sign_in(make_principal("teacher"))
    asyncio.run(store.sync())

    assert store.active_role is Role.TEACHER
    assert store.scope == UNRESTRICTED
    assert notifier.titles() == ["Failed to load staff profile"]


def test_refetch_reloads_current_tiers(store, auth, repo) -> None:
    auth.sign_in(make_principal("teacher"))

    async def run():
        await store.sync()
        await store.refetch()

    asyncio.run(run())
    assert repo.called("list_students") == 2
    assert store.is_loading is False


def test_remembered_role_survives_restart(auth, profiles, repo, notifier, local_cache) -> None:
    auth.sign_in(make_principal("teacher"))
    profiles.add(_director_profile())

    def build() -> DashboardStore:
        return DashboardStore(
            auth=auth, profiles=profiles, repo=repo, notifier=notifier, local_cache=local_cache
        )

    async def run():
        first = build()
        await first.sync()
        switch = await first.switch_active_role(Role.TEACHER)
        await switch.outcome()

        second = build()
        await second.sync()
        return second

    second = asyncio.run(run())
    assert second.active_role is Role.TEACHER
