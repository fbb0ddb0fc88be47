PASSWORDS = {
    "alice": "hunter22",
    "bob": "correct",
    "carol": "carol-secret",
    "root": "root-secret",
}


async def login(client, username, password=None):
    return await client.post("/api/auth/login", json={
        "username": username,
        "password": password if password is not None else PASSWORDS[username]
    })


def bearer(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}
