"""Role resolution: which roles a principal holds, and which one is active.

A principal can hold several roles at once: the declared role on the
identity record plus supplementary grants on their staff profile.  The
dashboard acts as exactly one of them at a time, the *active role*.

Selection order for the active role on (re)resolution:

  1. the role remembered on the principal record, if still held
  2. the role cached locally from a previous session, if still held
  3. the highest-priority role held

Both writers of the active role (``resolve`` and ``switch_active_role``)
refuse any role outside the current RoleSet.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from schoolhub.core.metrics import ACTIVE_ROLE_SWITCHES, ROLE_SYNC
from schoolhub.models.principal import Principal
from schoolhub.models.roles import Role, UnknownRoleError, parse_role, sort_by_priority
from schoolhub.models.staff_profile import StaffProfile
from schoolhub.repos.auth_repo import AuthProvider
from schoolhub.services.local_cache import ACTIVE_ROLE_KEY, LocalCache
from schoolhub.services.notifications import Notifier, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RoleSet:
    roles: tuple[Role, ...] = ()
    # Tags that were offered but are not part of the vocabulary.
    rejected: tuple[str, ...] = ()

    def __contains__(self, role: object) -> bool:
        return role in self.roles

    def __iter__(self):
        return iter(self.roles)

    def __len__(self) -> int:
        return len(self.roles)

    @property
    def head(self) -> Role | None:
        return self.roles[0] if self.roles else None


EMPTY_ROLE_SET = RoleSet()


def _try_parse(tag: str | None, rejected: list[str]) -> Role | None:
    if not tag:
        return None
    try:
        return parse_role(tag)
    except UnknownRoleError:
        rejected.append(tag)
        return None


def resolve_roles(principal: Principal | None, staff_profile: StaffProfile | None) -> RoleSet:
    if principal is None:
        return EMPTY_ROLE_SET

    roles: set[Role] = set()
    rejected: list[str] = []

    declared = _try_parse(principal.declared_role, rejected)
    if declared is not None:
        roles.add(declared)

    if staff_profile is not None and not (declared is not None and declared.is_terminal):
        # A supplementary tag counts only when it carries a non-empty scope.
        tags = dict.fromkeys([*staff_profile.roles, *staff_profile.assignments])
        for tag in tags:
            assignment = staff_profile.assignment_for(tag)
            if assignment is None or assignment.is_empty():
                continue
            role = _try_parse(tag, rejected)
            if role is not None:
                roles.add(role)

    if rejected:
        logger.warning(
            "Rejected unknown role tags %s for principal=%s",
            sorted(set(rejected)),
            principal.principal_id,
        )
    return RoleSet(roles=sort_by_priority(roles), rejected=tuple(dict.fromkeys(rejected)))


def select_active_role(
    role_set: RoleSet,
    remembered_role: str | None,
    cached_role: str | None,
) -> Role | None:
    for candidate in (remembered_role, cached_role):
        if not candidate:
            continue
        try:
            role = parse_role(candidate)
        except UnknownRoleError:
            continue
        if role in role_set:
            return role
    return role_set.head


class RoleSyncStatus(str, Enum):
    SYNCED = "synced"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class RoleSyncOutcome:
    status: RoleSyncStatus
    role: Role | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not RoleSyncStatus.FAILED


SKIPPED = RoleSyncOutcome(status=RoleSyncStatus.SKIPPED)


@dataclass(frozen=True, slots=True)
class RoleSwitch:
    """Result of a switch request.

    ``applied`` is False for a no-op switch.  ``sync`` is the in-flight
    synchronization back to the principal record, or None when there is
    nothing to synchronize.
    """

    applied: bool
    role: Role | None
    sync: asyncio.Task[RoleSyncOutcome] | None = None

    async def outcome(self) -> RoleSyncOutcome:
        if self.sync is None:
            return SKIPPED
        return await self.sync


class RoleResolver:
    def __init__(
        self,
        auth: AuthProvider,
        local_cache: LocalCache,
        notifier: Notifier,
    ) -> None:
        self._auth = auth
        self._cache = local_cache
        self._notifier = notifier
        self._principal: Principal | None = None
        self._role_set: RoleSet = EMPTY_ROLE_SET
        self._active_role: Role | None = None

    @property
    def role_set(self) -> RoleSet:
        return self._role_set

    @property
    def active_role(self) -> Role | None:
        return self._active_role

    def _commit(self, role: Role | None) -> bool:
        # Single write path for the active role.
        if role is not None and role not in self._role_set:
            return False
        self._active_role = role
        return True

    async def resolve(
        self, principal: Principal | None, staff_profile: StaffProfile | None
    ) -> RoleSwitch:
        """Recompute the RoleSet and (re)select the active role."""
        self._principal = principal
        self._role_set = resolve_roles(principal, staff_profile)

        if principal is None or not self._role_set:
            self._commit(None)
            if principal is not None:
                logger.warning(
                    "Principal=%s has no usable role", principal.principal_id
                )
            return RoleSwitch(applied=False, role=None)

        cached = await self._cache.get(ACTIVE_ROLE_KEY)
        selected = select_active_role(self._role_set, principal.remembered_role, cached)
        if selected == self._active_role:
            return RoleSwitch(applied=False, role=selected)

        self._commit(selected)
        await self._cache.set(ACTIVE_ROLE_KEY, selected.value)
        logger.info(
            "Active role resolved to %s",
            selected.value,
            extra={"active_role": selected.value, "tenant_id": principal.tenant_id},
        )
        sync = None
        if selected.value != principal.remembered_role:
            sync = asyncio.create_task(self._sync(principal.principal_id, selected))
        return RoleSwitch(applied=True, role=selected, sync=sync)

    async def switch_active_role(self, new_role: Role) -> RoleSwitch:
        """Make ``new_role`` active; a role outside the RoleSet is a no-op."""
        if self._principal is None or not self._commit(new_role):
            logger.debug("Ignored switch to role=%s outside role set", new_role)
            return RoleSwitch(applied=False, role=self._active_role)

        ACTIVE_ROLE_SWITCHES.labels(role=new_role.value).inc()
        await self._cache.set(ACTIVE_ROLE_KEY, new_role.value)
        logger.info(
            "Switched active role to %s",
            new_role.value,
            extra={"active_role": new_role.value, "tenant_id": self._principal.tenant_id},
        )
        sync = asyncio.create_task(self._sync(self._principal.principal_id, new_role))
        return RoleSwitch(applied=True, role=new_role, sync=sync)

    async def _sync(self, principal_id: str, role: Role) -> RoleSyncOutcome:
        try:
            await self._auth.persist_active_role(principal_id, role.value)
        except Exception as exc:
            ROLE_SYNC.labels(outcome="failed").inc()
            logger.warning("Active role sync failed for principal=%s: %s", principal_id, exc)
            self._notifier.report(
                Severity.ERROR,
                "Role Switch Failed",
                "Could not update your active session role. Please try again.",
            )
            return RoleSyncOutcome(status=RoleSyncStatus.FAILED, role=role, error=str(exc))
        ROLE_SYNC.labels(outcome="ok").inc()
        return RoleSyncOutcome(status=RoleSyncStatus.SYNCED, role=role)
