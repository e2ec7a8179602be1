def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["service"] == "parkbook-api"


def test_metrics_exposition(client, actor_headers, alice):
    client.get("/api/v1/bookings/history", headers=actor_headers(alice))

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "parkbook_service_operations_total" in response.text


def test_unknown_route_is_problem_json(client):
    response = client.get("/api/v1/nowhere")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["instance"] == "/api/v1/nowhere"
