"""Tests for the CPA sync and activation endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import httpx
import paramiko
from pydantic import SecretStr

from cpasync.exceptions import DuplicateDocumentIdError, RepositoryDataError
from cpasync.services.activation_service import (
    ActivationOutcome,
    ActivationReport,
    ActivationState,
)
from cpasync.services.sync_service import SyncResult
from tests.conftest import create_test_client

if TYPE_CHECKING:
    from fastapi import FastAPI

    from cpasync.services.archive_service import CpaArchiveRepository


def _wire(
    app: FastAPI,
    sync_result: SyncResult | Exception | None = None,
    archive_repository: object | None = None,
) -> tuple[MagicMock, MagicMock]:
    sync_service = MagicMock()
    sync_service.sync = AsyncMock(side_effect=[sync_result or SyncResult()])
    activate_service = MagicMock()
    activate_service.activate_pending_cpas = AsyncMock(return_value=ActivationReport())
    app.state.sync_service = sync_service
    app.state.activate_service = activate_service if archive_repository is not None else None
    app.state.archive_repository = archive_repository
    return sync_service, activate_service


class TestSyncEndpoint:
    async def test_runs_sync(self, app: FastAPI) -> None:
        result = SyncResult(
            upserted=["nav:1"],
            deleted=["nav:2"],
            unchanged=["nav:3"],
            activated=["01230800_nav.1._R_x._R_.qrntn"],
        )
        sync_service, _ = _wire(app, result)

        async with create_test_client(app) as client:
            resp = await client.post("/api/cpa/sync")

        assert resp.status_code == 200
        assert resp.json() == {
            "upserted": ["nav:1"],
            "deleted": ["nav:2"],
            "unchanged": ["nav:3"],
            "activated": ["01230800_nav.1._R_x._R_.qrntn"],
            "activation_failures": [],
        }
        sync_service.sync.assert_awaited_once()

    async def test_duplicate_id_is_conflict(self, app: FastAPI) -> None:
        _wire(app, DuplicateDocumentIdError("nav:1", "a.xml", "b.xml"))

        async with create_test_client(app) as client:
            resp = await client.post("/api/cpa/sync")

        assert resp.status_code == 409
        assert "nav:1" in resp.json()["detail"]

    async def test_repository_failure_is_bad_gateway(self, app: FastAPI) -> None:
        _wire(app, httpx.ConnectError("connection refused"))

        async with create_test_client(app) as client:
            resp = await client.post("/api/cpa/sync")

        assert resp.status_code == 502
        assert resp.json() == {"detail": "CPA repository request failed"}

    async def test_file_store_failure_is_bad_gateway(self, app: FastAPI) -> None:
        _wire(app, paramiko.SSHException("Error reading SSH protocol banner"))

        async with create_test_client(app) as client:
            resp = await client.post("/api/cpa/sync")

        assert resp.status_code == 502
        assert resp.json() == {"detail": "File store unavailable"}

    async def test_invalid_repository_data_is_bad_gateway(self, app: FastAPI) -> None:
        _wire(app, RepositoryDataError("Unreadable repository timestamp 'yesterday'"))

        async with create_test_client(app) as client:
            resp = await client.post("/api/cpa/sync")

        assert resp.status_code == 502
        assert resp.json() == {"detail": "CPA repository returned invalid data"}

    async def test_os_error_is_bad_gateway(self, app: FastAPI) -> None:
        _wire(app, OSError(5, "Input/output error"))

        async with create_test_client(app) as client:
            resp = await client.post("/api/cpa/sync")

        assert resp.status_code == 502


class TestActivateEndpoint:
    async def test_runs_activation(
        self, app: FastAPI, archive_repository: CpaArchiveRepository
    ) -> None:
        _, activate_service = _wire(app, archive_repository=archive_repository)
        activate_service.activate_pending_cpas.return_value = ActivationReport(
            [
                ActivationOutcome("q1.qrntn", ActivationState.DB_PROMOTED, "nav:1"),
                ActivationOutcome(
                    "q2.qrntn", ActivationState.FILE_RENAMED, "nav:2", error="No live row"
                ),
            ]
        )

        async with create_test_client(app) as client:
            resp = await client.post("/api/cpa/activate")

        assert resp.status_code == 200
        body = resp.json()
        assert body["activated"] == ["q1.qrntn"]
        assert body["failed"] == ["q2.qrntn"]
        assert body["outcomes"][1] == {
            "filename": "q2.qrntn",
            "state": "file_renamed",
            "cpa_id": "nav:2",
            "error": "No live row",
        }

    async def test_unavailable_without_archive(self, app: FastAPI) -> None:
        _wire(app)

        async with create_test_client(app) as client:
            resp = await client.post("/api/cpa/activate")

        assert resp.status_code == 503


class TestQuarantinedEndpoint:
    async def test_counts_quarantined(
        self, app: FastAPI, archive_repository: CpaArchiveRepository
    ) -> None:
        _wire(app, archive_repository=archive_repository)

        async with create_test_client(app) as client:
            resp = await client.get("/api/cpa/archive/quarantined")

        assert resp.status_code == 200
        assert resp.json() == {"quarantined": 0}

    async def test_unavailable_without_archive(self, app: FastAPI) -> None:
        _wire(app)

        async with create_test_client(app) as client:
            resp = await client.get("/api/cpa/archive/quarantined")

        assert resp.status_code == 503


class TestApiToken:
    async def test_rejects_missing_token(self, app: FastAPI) -> None:
        app.state.settings = app.state.settings.model_copy(
            update={"api_token": SecretStr("s3cret")}
        )
        sync_service, _ = _wire(app)

        async with create_test_client(app) as client:
            resp = await client.post("/api/cpa/sync")

        assert resp.status_code == 401
        sync_service.sync.assert_not_called()

    async def test_rejects_wrong_token(self, app: FastAPI) -> None:
        app.state.settings = app.state.settings.model_copy(
            update={"api_token": SecretStr("s3cret")}
        )
        _wire(app)

        async with create_test_client(app) as client:
            resp = await client.post(
                "/api/cpa/sync", headers={"Authorization": "Bearer wrong"}
            )

        assert resp.status_code == 401

    async def test_accepts_token(self, app: FastAPI) -> None:
        app.state.settings = app.state.settings.model_copy(
            update={"api_token": SecretStr("s3cret")}
        )
        _wire(app)

        async with create_test_client(app) as client:
            resp = await client.post(
                "/api/cpa/sync", headers={"Authorization": "Bearer s3cret"}
            )

        assert resp.status_code == 200
