from __future__ import annotations

import asyncio
from dataclasses import replace

from schoolhub.api.dependencies import build_store
from schoolhub.core.config import SETTINGS
from schoolhub.main import app
from schoolhub.repos.auth_repo import InMemoryAuthProvider
from schoolhub.repos.rest_auth_repo import RestAuthProvider
from schoolhub.repos.rest_school_data_repo import RestSchoolDataRepo
from schoolhub.repos.school_data_repo import InMemorySchoolDataRepo


def test_routes_are_mounted() -> None:
    paths = {getattr(r, "path", None) for r in app.routes}
    assert {
        "/health",
        "/metrics",
        "/v1/dashboard",
        "/v1/dashboard/structure",
        "/v1/dashboard/groups",
        "/v1/dashboard/class-descs",
        "/v1/dashboard/sections",
        "/v1/dashboard/sync",
        "/v1/dashboard/active-role",
        "/v1/dashboard/year",
        "/v1/dashboard/years",
        "/v1/dashboard/term",
        "/v1/dashboard/refetch",
    } <= paths


def test_build_store_without_data_api_is_in_memory() -> None:
    store = build_store(replace(SETTINGS, data_api_url=None))
    assert isinstance(store._auth, InMemoryAuthProvider)
    assert isinstance(store._repo, InMemorySchoolDataRepo)


def test_build_store_with_data_api_uses_rest_adapters() -> None:
    settings = replace(
        SETTINGS,
        data_api_url="https://data.example.test",
        data_api_key="anon-key",
        data_api_session_token="session-token",
    )
    store = build_store(settings)
    try:
        assert isinstance(store._auth, RestAuthProvider)
        assert isinstance(store._repo, RestSchoolDataRepo)
        # One adapter serves both staff profiles and school data.
        assert store._profiles is store._repo
    finally:
        asyncio.run(store.aclose())
