"""Tests for the FastAPI service mode."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from moduledoc.driver import Driver
from moduledoc.models import Kind, Value
from moduledoc.service import create_app
from tests._fixtures.caddy_world import CORE, FILESERVER, HTTP


@pytest.fixture
def client(driver: Driver) -> TestClient:
    return TestClient(create_app(lambda: driver))


@pytest.fixture
def loaded_client(loaded_driver: Driver) -> TestClient:
    return TestClient(create_app(lambda: loaded_driver))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_add_type_and_lookup(client: TestClient) -> None:
    added = client.post("/api/types", json={"package": CORE, "type_name": "Config"})
    assert added.status_code == 200
    assert added.json()["value"]["type_name"] == f"{CORE}.Config"

    response = client.get("/api/config/admin/listen")
    assert response.status_code == 200
    body = response.json()
    assert body["exact"] == {"type": "string"}
    assert body["nearest"]["type_name"] == f"{CORE}.AdminConfig"


def test_root_config_lookup(loaded_client: TestClient) -> None:
    response = loaded_client.get("/api/config")

    assert response.status_code == 200
    assert response.json()["exact"]["type_name"] == f"{CORE}.Config"


def test_load_modules_endpoint(client: TestClient) -> None:
    response = client.post(
        "/api/modules",
        json={"package_pattern": FILESERVER, "include_imports": False},
    )

    assert response.status_code == 200
    assert response.json() == {
        "modules": [
            {"module_name": "http.handlers.file_server", "type_name": f"{FILESERVER}.FileServer"}
        ]
    }


def test_module_endpoint(loaded_client: TestClient) -> None:
    response = loaded_client.get("/api/module/http")

    assert response.status_code == 200
    body = response.json()
    assert body["module_id"] == "http"
    assert [value["type_name"] for value in body["values"]] == [f"{HTTP}.App"]


def test_unknown_module_returns_404(loaded_client: TestClient) -> None:
    response = loaded_client.get("/api/module/nope")

    assert response.status_code == 404


def test_lookup_without_root_type_returns_404(client: TestClient) -> None:
    response = client.get("/api/config/apps")

    assert response.status_code == 404
    assert "start type not found" in response.json()["detail"]


def test_unsupported_traversal_returns_400(loaded_client: TestClient) -> None:
    response = loaded_client.get("/api/config/admin/listen/deeper")

    assert response.status_code == 400


def test_ambiguous_module_lists_candidates(loaded_driver: Driver, loaded_client: TestClient) -> None:
    storage = loaded_driver.storage
    storage.put_type(
        "example.com/other",
        "App",
        "v1.0.0",
        Value(kind=Kind.STRUCT, type_name="example.com/other.App", struct_fields=[]),
    )
    storage.set_extension_name("example.com/other", "App", "http", "v1.0.0")

    response = loaded_client.get("/api/config/apps/http")

    assert response.status_code == 400
    assert response.json()["candidates"] == ["example.com/other.App", f"{HTTP}.App"]
