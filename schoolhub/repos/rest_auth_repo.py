"""Auth provider backed by the identity service's user endpoint.

``GET /auth/v1/user`` returns the signed-in user; the fields the
dashboard cares about live in ``user_metadata``:

  role         declared role tag
  school_id    tenant the user belongs to
  active_role  role the user last worked in (written back by us)

The access token belongs to one operator session, so one provider
instance serves one session.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from schoolhub.core.config import Settings
from schoolhub.models.principal import Principal
from schoolhub.repos.rest_school_data_repo import response_error_message
from schoolhub.repos.school_data_repo import RemoteDataError

logger = logging.getLogger(__name__)

_USER = "/auth/v1/user"


def _user_to_principal(body: dict[str, Any]) -> Principal:
    meta = body.get("user_metadata") or {}
    return Principal(
        principal_id=str(body["id"]),
        declared_role=meta.get("role"),
        tenant_id=meta.get("school_id"),
        remembered_role=meta.get("active_role"),
    )


class RestAuthProvider:
    def __init__(self, client: httpx.AsyncClient, access_token: str | None) -> None:
        self._client = client
        self._token = access_token
        self._principal: Principal | None = None
        self._resolving = False

    @classmethod
    def from_settings(cls, settings: Settings) -> RestAuthProvider:
        if settings.data_api_url is None:
            raise ValueError("DATA_API_URL is required for the REST auth provider")
        headers = {"apikey": settings.data_api_key} if settings.data_api_key else {}
        client = httpx.AsyncClient(
            base_url=settings.data_api_url,
            headers=headers,
            timeout=settings.data_api_timeout,
        )
        return cls(client, settings.data_api_session_token)

    async def aclose(self) -> None:
        await self._client.aclose()

    def current_principal(self) -> Principal | None:
        return self._principal

    def is_auth_resolving(self) -> bool:
        return self._resolving

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    async def refresh(self) -> None:
        if not self._token:
            self._principal = None
            return
        self._resolving = True
        try:
            resp = await self._client.get(_USER, headers=self._auth_headers())
        except httpx.HTTPError as exc:
            # Keep the last known principal; a flaky network is not a sign-out.
            logger.warning("Session refresh failed: %s", exc)
            return
        finally:
            self._resolving = False

        if resp.status_code in (401, 403):
            logger.info("Session rejected by identity service (%d)", resp.status_code)
            self._principal = None
            return
        if not resp.is_success:
            raise RemoteDataError(response_error_message(resp))
        self._principal = _user_to_principal(resp.json())

    async def persist_active_role(self, principal_id: str, role: str) -> None:
        if not self._token:
            raise RemoteDataError("no session token")
        resp = await self._client.put(
            _USER,
            json={"data": {"active_role": role}},
            headers=self._auth_headers(),
        )
        if not resp.is_success:
            raise RemoteDataError(response_error_message(resp))
        self._principal = _user_to_principal(resp.json())
        logger.debug("Persisted active role=%s for principal=%s", role, principal_id)
