from tests.helpers import login


async def test_error_body_shape(client, principals, clock):
    response = await login(client, "alice", "wrong-password")

    assert response.status_code == 401
    assert response.json() == {
        "timestamp": clock.now().isoformat(),
        "status": 401,
        "error": "Unauthorized",
        "message": "Invalid credentials",
    }


async def test_validation_errors_are_bad_request(client):
    response = await client.post("/api/auth/refresh", json={})

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == 400
    assert body["error"] == "Bad Request"
    assert "refreshToken" in body["message"]


async def test_unknown_route_uses_envelope(client):
    response = await client.get("/api/auth/nope")

    assert response.status_code == 404
    body = response.json()
    assert body["status"] == 404
    assert body["error"] == "Not Found"


async def test_method_not_allowed_uses_envelope(client):
    response = await client.get("/api/auth/login")

    assert response.status_code == 405
    assert response.json()["error"] == "Method Not Allowed"


async def test_lockout_body_includes_retry_after(client, principals):
    for _ in range(5):
        await login(client, "bob", "wrong-password")

    response = await login(client, "bob")

    assert response.status_code == 429
    body = response.json()
    assert body["error"] == "Too Many Requests"
    assert body["retryAfterSeconds"] == 900
    assert "900" in body["message"]
