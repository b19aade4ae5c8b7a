from fastapi.testclient import TestClient


REQUIRED_ROUTES = {
    "/webhook",
    "/api/orders",
    "/api/stats",
    "/api/orders/{order_id}/messages",
    "/api/orders/{order_id}/status",
    "/api/orders/{order_id}/run-pipeline",
    "/api/orders/{order_id}/vendor-status",
    "/internal/metrics",
    "/health",
}


def test_api_startup_and_router_registration(monkeypatch):
    from formfit import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/")
        health_response = client.get("/health")
        openapi_response = client.get("/openapi.json")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert health_response.json() == {"status": "healthy"}
    assert openapi_response.status_code == 200

    paths = {route.path for route in main.app.routes}
    assert REQUIRED_ROUTES.issubset(paths)
