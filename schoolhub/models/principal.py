from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Signed-in identity as handed over by the auth collaborator.

    Read-only to the orchestration layer.  Role fields hold raw tags, not
    ``Role`` members: the auth provider stores free-form metadata and the
    resolver decides what it recognizes.

        principal_id: stable subject id
        declared_role: primary role from the identity record
        tenant_id: school the principal belongs to (None for super-admins)
        remembered_role: active role synchronized back on a previous switch
    """

    principal_id: str
    declared_role: str | None
    tenant_id: str | None = None
    remembered_role: str | None = None

    def has_tenant(self) -> bool:
        return bool(self.tenant_id)
