"""Every failure path renders the same error envelope."""

from __future__ import annotations

from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from lms.api.errors import install_error_handlers
from lms.core.errors import InternalError
from lms.middleware.request_context import RequestContextMiddleware


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)
    install_error_handlers(app)
    router = APIRouter()

    @router.get("/boom")
    async def boom() -> None:
        raise RuntimeError("connection refused by db-host:5432")

    @router.get("/wrapped")
    async def wrapped() -> None:
        try:
            raise OSError("disk full")
        except OSError as exc:
            raise InternalError("failed to clean up enrollments") from exc

    app.include_router(router)
    return app


def test_unknown_route_is_not_found(client: TestClient) -> None:
    resp = client.get("/v2/nothing-here")
    assert resp.status_code == 404
    assert resp.json()["error"]["kind"] == "not_found"


def test_wrong_method_keeps_envelope(client: TestClient) -> None:
    resp = client.put("/health")
    assert resp.status_code == 405
    assert resp.json()["error"]["kind"] == "http_error"


def test_unhandled_exception_hides_details() -> None:
    client = TestClient(_app(), raise_server_exceptions=False)
    resp = client.get("/boom", headers={"X-Request-ID": "req-boom"})
    assert resp.status_code == 500
    assert resp.json() == {
        "error": {"kind": "internal", "message": "internal error"},
        "request_id": "req-boom",
    }
    assert "db-host" not in resp.text


def test_internal_domain_error_keeps_its_message() -> None:
    client = TestClient(_app(), raise_server_exceptions=False)
    resp = client.get("/wrapped")
    assert resp.status_code == 500
    assert resp.json()["error"] == {
        "kind": "internal",
        "message": "failed to clean up enrollments",
    }
    assert "disk full" not in resp.text
