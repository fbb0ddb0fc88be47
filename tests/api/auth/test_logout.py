from tests.helpers import bearer, login


async def test_logout_success(client, principals):
    """Test successful logout with valid refresh token."""
    tokens = (await login(client, "alice")).json()

    response = await client.post(
        "/api/auth/logout",
        json={"refreshToken": tokens["refreshToken"]},
        headers=bearer(tokens["accessToken"])
    )

    assert response.status_code == 200
    assert response.json() == {"code": "LOGOUT_SUCCESS", "message": "Logged out successfully"}

    # Verify token is revoked - try to use it
    response = await client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})

    assert response.status_code == 401


async def test_logout_twice_succeeds(client, principals):
    tokens = (await login(client, "alice")).json()
    headers = bearer(tokens["accessToken"])

    for _ in range(2):
        response = await client.post(
            "/api/auth/logout", json={"refreshToken": tokens["refreshToken"]}, headers=headers
        )
        assert response.status_code == 200


async def test_logout_unknown_token_succeeds(client, principals):
    tokens = (await login(client, "alice")).json()

    response = await client.post(
        "/api/auth/logout",
        json={"refreshToken": "never-issued"},
        headers=bearer(tokens["accessToken"])
    )

    assert response.status_code == 200


async def test_logout_requires_authentication(client, principals):
    tokens = (await login(client, "alice")).json()

    response = await client.post("/api/auth/logout", json={"refreshToken": tokens["refreshToken"]})

    assert response.status_code == 401
    assert response.json()["message"] == "Not authenticated"

    # The refresh token is still usable
    response = await client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert response.status_code == 200
