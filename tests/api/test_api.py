"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from conftest import export_archive, make_zip
from linkedin_vault.api import create_app
from linkedin_vault.config import VaultConfig
from linkedin_vault.lifecycle.dal import BackupDAL
from linkedin_vault.services import build_services

USER = {"X-User-Id": "u1"}


@pytest.fixture
def api_config(tmp_path):
    return VaultConfig(
        storage={
            "object_store_path": str(tmp_path / "objects"),
            "database_path": str(tmp_path / "vault.db"),
        },
        api={"maintenance_secret": "s3cret"},
    )


@pytest.fixture
def services(api_config):
    services = build_services(api_config)
    yield services
    services.close()


@pytest.fixture
def client(api_config, services):
    return TestClient(create_app(api_config, services))


def upload(client, data=None, name="export.zip", headers=USER, **form):
    return client.post(
        "/api/backups",
        files={"file": (name, data if data is not None else export_archive(), "application/zip")},
        data=form,
        headers=headers,
    )


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client):
        """Test that health reports the database."""
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "ok"


class TestBackups:
    """Tests for backup endpoints."""

    def test_requires_user(self, client):
        """Test that requests without the identity header are refused."""
        response = client.get("/api/backups")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_upload(self, client):
        """Test that an upload creates a pending backup."""
        response = upload(client, keep_raw_forever="true")

        assert response.status_code == 201
        backup = response.json()["backup"]
        assert backup["status"] == "pending"
        assert backup["file_name"] == "export.zip"
        assert backup["retention"]["keep_raw_forever"] is True

    def test_upload_not_zip(self, client):
        """Test that non-ZIP uploads are a client error."""
        response = upload(client, data=b"hello", name="notes.txt")

        assert response.status_code == 400
        assert "ZIP" in response.json()["error"]

    def test_upload_too_large(self, tmp_path):
        """Test the upload ceiling."""
        config = VaultConfig(
            storage={"object_store_path": str(tmp_path / "o"), "database_path": str(tmp_path / "v.db")},
            limits={"max_upload_bytes": 200, "max_total_uncompressed_bytes": 1000, "max_file_bytes": 1000},
        )
        services = build_services(config)
        try:
            response = upload(TestClient(create_app(config, services)))
        finally:
            services.close()

        assert response.status_code == 400
        assert response.json()["error"].startswith("File too large")

    def test_list_and_get(self, client):
        """Test listing and fetching a backup."""
        backup_id = upload(client).json()["backup"]["backup_id"]

        listed = client.get("/api/backups", headers=USER).json()
        assert listed["total"] == 1
        assert listed["backups"][0]["backup_id"] == backup_id

        response = client.get(f"/api/backups/{backup_id}", headers=USER)
        assert response.status_code == 200
        assert response.json()["backup"]["backup_id"] == backup_id

    def test_other_user(self, client):
        """Test that another user's backup is forbidden."""
        backup_id = upload(client).json()["backup"]["backup_id"]

        response = client.get(f"/api/backups/{backup_id}", headers={"X-User-Id": "u2"})

        assert response.status_code == 403

    def test_missing(self, client):
        """Test unknown ids."""
        assert client.get("/api/backups/nope", headers=USER).status_code == 404

    def test_process_and_snapshot(self, client):
        """Test processing, the repeat trigger and the snapshot."""
        backup_id = upload(client).json()["backup"]["backup_id"]

        first = client.post(f"/api/backups/{backup_id}/process", headers=USER)
        second = client.post(f"/api/backups/{backup_id}/process", headers=USER)

        assert first.status_code == 200
        assert first.json()["already_processed"] is False
        assert first.json()["backup"]["status"] == "ready"
        assert second.json()["already_processed"] is True

        snapshot = client.get(f"/api/backups/{backup_id}/snapshot", headers=USER).json()
        assert snapshot["total_connections"] == 3
        assert snapshot["report"]["network_health"]["score"] == 50

    def test_plan_header_sets_tier(self, client):
        """Test that the plan header selects the insight tier."""
        backup_id = upload(client).json()["backup"]["backup_id"]

        client.post(f"/api/backups/{backup_id}/process", headers={**USER, "X-User-Plan": "pro"})

        report = client.get(f"/api/backups/{backup_id}/snapshot", headers=USER).json()["report"]
        assert report["tier"] == "enriched"

    def test_process_failure(self, client):
        """Test that a rejected archive surfaces as a server error with a message."""
        data = make_zip({"x/Connections.csv": "a\n1\n", "../evil.csv": "x"})
        backup_id = upload(client, data=data).json()["backup"]["backup_id"]

        response = client.post(f"/api/backups/{backup_id}/process", headers=USER)

        assert response.status_code == 500
        assert "Suspicious path" in response.json()["error"]
        status = client.get(f"/api/backups/{backup_id}", headers=USER).json()["backup"]["status"]
        assert status == "error"

    def test_process_conflict(self, client, services):
        """Test that a backup held by another run is a conflict."""
        backup_id = upload(client).json()["backup"]["backup_id"]
        BackupDAL(services.db).claim(backup_id, services.manager._now())

        response = client.post(f"/api/backups/{backup_id}/process", headers=USER)

        assert response.status_code == 409

    def test_export_connections(self, client):
        """Test the CSV download."""
        backup_id = upload(client).json()["backup"]["backup_id"]

        response = client.get(f"/api/backups/{backup_id}/export-connections", headers=USER)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert f"linkedin-connections-{backup_id}.csv" in response.headers["content-disposition"]
        assert response.text.startswith("First Name,Last Name")


class TestMaintenance:
    """Tests for the retention sweep endpoint."""

    def test_requires_secret(self, client):
        """Test that the sweep needs the shared secret."""
        response = client.post("/api/maintenance/retention-sweep")
        assert response.status_code == 401

        response = client.post("/api/maintenance/retention-sweep", headers={"X-Maintenance-Secret": "wrong"})
        assert response.status_code == 401

    def test_disabled_without_secret(self, tmp_path):
        """Test that an unset secret disables the endpoint."""
        config = VaultConfig(storage={
            "object_store_path": str(tmp_path / "o"), "database_path": str(tmp_path / "v.db"),
        })
        services = build_services(config)
        try:
            response = TestClient(create_app(config, services)).post(
                "/api/maintenance/retention-sweep", headers={"X-Maintenance-Secret": "anything"}
            )
        finally:
            services.close()

        assert response.status_code == 403

    def test_sweep(self, client):
        """Test a sweep with nothing expired."""
        response = client.post("/api/maintenance/retention-sweep", headers={"X-Maintenance-Secret": "s3cret"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["recovered_stale"] == 0
        assert body["raw_deleted"] == 0
        assert body["errors"] == []
