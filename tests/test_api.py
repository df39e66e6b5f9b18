"""Integration tests for the HTTP API."""
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from taskflow.errors import StoreFailure
from taskflow.main import create_app
from taskflow.sessions import encode_session_cookie
from taskflow.storage import DatabaseStorage, MemoryStorage

from .fakes import signup_and_login

COOKIE = "taskflow.sid"


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_signup_login_and_task_flow(client: AsyncClient) -> None:
    """A user can sign up, log in, create a task, complete it and watch the stats move."""

    response = await client.post(
        "/api/auth/signup",
        json={
            "username": "alice",
            "email": "a@x.com",
            "password": "pw1pw1",
            "confirmPassword": "pw1pw1",
            "firstName": "Alice",
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User created successfully"
    user_id = body["userId"]

    login = await client.post("/api/auth/login", json={"username": "alice", "password": "pw1pw1"})
    assert login.status_code == 200
    assert login.json()["user"] == {"id": user_id, "username": "alice", "email": "a@x.com"}
    set_cookie = login.headers["set-cookie"]
    assert COOKIE in set_cookie
    assert "httponly" in set_cookie.lower()
    assert "max-age=604800" in set_cookie.lower()

    me = await client.get("/api/auth/user")
    assert me.status_code == 200
    assert me.json() == {
        "id": user_id,
        "username": "alice",
        "email": "a@x.com",
        "firstName": "Alice",
        "lastName": None,
    }

    created = await client.post("/api/tasks", json={"title": "Buy milk", "priority": "high"})
    assert created.status_code == 201
    task = created.json()
    assert task["title"] == "Buy milk"
    assert task["priority"] == "high"
    assert task["completed"] is False
    assert task["userId"] == user_id
    assert {"id", "dueDate", "description", "createdAt", "updatedAt"} <= set(task)

    stats = await client.get("/api/tasks/stats")
    assert stats.json() == {"total": 1, "completed": 0, "pending": 1, "overdue": 0}

    patched = await client.patch(f"/api/tasks/{task['id']}", json={"completed": True})
    assert patched.status_code == 200
    assert patched.json()["completed"] is True
    assert patched.json()["title"] == "Buy milk"

    stats = await client.get("/api/tasks/stats")
    assert stats.json() == {"total": 1, "completed": 1, "pending": 0, "overdue": 0}

    listed = await client.get("/api/tasks")
    assert [t["id"] for t in listed.json()] == [task["id"]]


@pytest.mark.asyncio
async def test_password_hash_never_leaves_the_server(client: AsyncClient) -> None:
    login = await signup_and_login(client, "alice", "a@x.com")
    me = await client.get("/api/auth/user")

    for payload in (login, login["user"], me.json()):
        assert "password" not in payload
        assert "passwordHash" not in payload


@pytest.mark.asyncio
async def test_overdue_task_counts_as_pending(client: AsyncClient) -> None:
    await signup_and_login(client, "alice", "a@x.com")
    yesterday = (datetime.now(timezone.utc).date() - timedelta(days=1)).isoformat()

    response = await client.post("/api/tasks", json={"title": "Pay rent", "dueDate": yesterday})
    assert response.status_code == 201
    assert response.json()["dueDate"] == yesterday

    stats = (await client.get("/api/tasks/stats")).json()
    assert stats == {"total": 1, "completed": 0, "pending": 1, "overdue": 1}


@pytest.mark.asyncio
async def test_other_user_cannot_see_or_touch_task(
    client: AsyncClient, other_client: AsyncClient
) -> None:
    await signup_and_login(client, "alice", "a@x.com")
    await signup_and_login(other_client, "bob", "b@x.com")

    task = (await client.post("/api/tasks", json={"title": "Alice only"})).json()
    url = f"/api/tasks/{task['id']}"

    for response in (
        await other_client.get(url),
        await other_client.patch(url, json={"title": "mine now"}),
        await other_client.delete(url),
    ):
        assert response.status_code == 404
        assert response.json() == {"message": "Task not found"}
        assert "Alice only" not in response.text

    assert (await other_client.get("/api/tasks")).json() == []
    assert (await other_client.get("/api/tasks/stats")).json()["total"] == 0
    assert (await client.get(url)).json()["title"] == "Alice only"

    # A missing id looks exactly like someone else's.
    missing = await other_client.get("/api/tasks/999999")
    assert missing.status_code == 404
    assert missing.json() == {"message": "Task not found"}


@pytest.mark.asyncio
async def test_owner_comes_from_session_not_payload(
    client: AsyncClient, other_client: AsyncClient
) -> None:
    alice = await signup_and_login(client, "alice", "a@x.com")
    bob = await signup_and_login(other_client, "bob", "b@x.com")

    created = await other_client.post(
        "/api/tasks", json={"title": "Spoofed", "userId": alice["user"]["id"]}
    )
    assert created.status_code == 201
    assert created.json()["userId"] == bob["user"]["id"]
    assert (await client.get("/api/tasks")).json() == []

    patched = await other_client.patch(
        f"/api/tasks/{created.json()['id']}", json={"userId": alice["user"]["id"]}
    )
    assert patched.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/tasks"),
        ("get", "/api/tasks/stats"),
        ("get", "/api/tasks/1"),
        ("post", "/api/tasks"),
        ("patch", "/api/tasks/1"),
        ("delete", "/api/tasks/1"),
        ("get", "/api/auth/user"),
        ("post", "/api/auth/logout"),
    ],
)
async def test_protected_routes_require_session(client: AsyncClient, method: str, path: str) -> None:
    kwargs = {"json": {"title": "x"}} if method in ("post", "patch") else {}
    response = await getattr(client, method)(path, **kwargs)

    assert response.status_code == 401
    assert response.json() == {"message": "Unauthorized"}


@pytest.mark.asyncio
async def test_forged_cookie_is_rejected(client: AsyncClient, other_client: AsyncClient) -> None:
    await signup_and_login(client, "alice", "a@x.com")
    other_client.cookies.set(COOKIE, "not-a-real-session")

    response = await other_client.get("/api/tasks")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_kills_the_session(app: FastAPI, client: AsyncClient) -> None:
    await signup_and_login(client, "alice", "a@x.com")
    cookie = client.cookies.get(COOKIE)
    assert cookie

    response = await client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"message": "Logout successful"}
    assert client.cookies.get(COOKIE) is None
    assert (await client.get("/api/tasks")).status_code == 401

    # Replaying the old cookie does not bring the session back.
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://testserver", cookies={COOKIE: cookie}
    ) as replay:
        assert (await replay.get("/api/tasks")).status_code == 401


@pytest.mark.asyncio
async def test_multiple_sessions_per_user(client: AsyncClient, other_client: AsyncClient) -> None:
    await signup_and_login(client, "alice", "a@x.com")
    login = await other_client.post("/api/auth/login", json={"username": "alice", "password": "secret123"})
    assert login.status_code == 200

    await client.post("/api/auth/logout")
    assert (await other_client.get("/api/tasks")).status_code == 200


@pytest.mark.asyncio
async def test_invalid_login(client: AsyncClient) -> None:
    await client.post(
        "/api/auth/signup", json={"username": "alice", "email": "a@x.com", "password": "secret123"}
    )

    wrong_password = await client.post(
        "/api/auth/login", json={"username": "alice", "password": "nope"}
    )
    unknown_user = await client.post(
        "/api/auth/login", json={"username": "mallory", "password": "nope"}
    )

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json() == {"message": "Invalid credentials"}
    assert "set-cookie" not in wrong_password.headers


@pytest.mark.asyncio
async def test_duplicate_signup(client: AsyncClient) -> None:
    payload = {"username": "alice", "email": "a@x.com", "password": "secret123"}
    assert (await client.post("/api/auth/signup", json=payload)).status_code == 201

    same_name = await client.post("/api/auth/signup", json={**payload, "email": "z@x.com"})
    assert same_name.status_code == 400
    assert same_name.json() == {"message": "Username already exists"}

    same_email = await client.post("/api/auth/signup", json={**payload, "username": "alice2"})
    assert same_email.status_code == 400
    assert same_email.json() == {"message": "Email already exists"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"username": "al", "email": "a@x.com", "password": "secret123"},
        {"username": "alice", "email": "not-an-email", "password": "secret123"},
        {"username": "alice", "email": "a@x.com", "password": "123"},
        {"username": "alice", "email": "a@x.com", "password": "secret123", "confirmPassword": "other"},
        {"email": "a@x.com", "password": "secret123"},
    ],
)
async def test_signup_validation(client: AsyncClient, payload: dict) -> None:
    response = await client.post("/api/auth/signup", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert body["errors"]


@pytest.mark.asyncio
async def test_task_validation(client: AsyncClient) -> None:
    await signup_and_login(client, "alice", "a@x.com")

    for payload in ({}, {"title": ""}, {"title": "x" * 201}, {"title": "ok", "priority": "urgent"}):
        response = await client.post("/api/tasks", json=payload)
        assert response.status_code == 400, payload
        assert response.json()["message"] == "Validation failed"

    title_error = (await client.post("/api/tasks", json={"title": ""})).json()["errors"]
    assert title_error[0]["field"] == "title"

    task = (await client.post("/api/tasks", json={"title": "ok"})).json()
    for payload in ({"title": ""}, {"title": None}, {"completed": None}, {"priority": "soon"}):
        response = await client.patch(f"/api/tasks/{task['id']}", json=payload)
        assert response.status_code == 400, payload


@pytest.mark.asyncio
async def test_non_numeric_task_id(client: AsyncClient) -> None:
    await signup_and_login(client, "alice", "a@x.com")

    for response in (
        await client.get("/api/tasks/abc"),
        await client.patch("/api/tasks/abc", json={"completed": True}),
        await client.delete("/api/tasks/1.5"),
    ):
        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "id", "message": "Invalid task ID"}]


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["1_0", "+7", " 7", "7 ", "0x10", "١"])
async def test_task_id_must_be_plain_digits(client: AsyncClient, raw: str) -> None:
    await signup_and_login(client, "alice", "a@x.com")
    await client.post("/api/tasks", json={"title": "number ten"})

    response = await client.get("/api/tasks/" + quote(raw))

    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "id", "message": "Invalid task ID"}]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw",
    [
        "0",
        "-1",
        "9223372036854775808",
        "99999999999999999999",
        pytest.param("1" + "0" * 5000, id="5001-digits"),
    ],
)
async def test_unrepresentable_task_id_is_not_found(client: AsyncClient, raw: str) -> None:
    await signup_and_login(client, "alice", "a@x.com")

    for response in (
        await client.get(f"/api/tasks/{raw}"),
        await client.patch(f"/api/tasks/{raw}", json={"completed": True}),
        await client.delete(f"/api/tasks/{raw}"),
    ):
        assert response.status_code == 404
        assert response.json() == {"message": "Task not found"}


@pytest.mark.asyncio
async def test_largest_task_id_is_looked_up(client: AsyncClient) -> None:
    await signup_and_login(client, "alice", "a@x.com")

    response = await client.get("/api/tasks/9223372036854775807")

    assert response.status_code == 404
    assert response.json() == {"message": "Task not found"}


@pytest.mark.asyncio
async def test_timestamps_carry_utc_offset(client: AsyncClient) -> None:
    await signup_and_login(client, "alice", "a@x.com")
    task = (await client.post("/api/tasks", json={"title": "When?"})).json()

    for key in ("createdAt", "updatedAt"):
        assert task[key].endswith("Z")
        parsed = datetime.fromisoformat(task[key])
        assert parsed.utcoffset() == timedelta(0)
        assert abs(datetime.now(timezone.utc) - parsed) < timedelta(minutes=5)


@pytest.mark.asyncio
async def test_partial_update_over_http(client: AsyncClient) -> None:
    await signup_and_login(client, "alice", "a@x.com")
    task = (
        await client.post(
            "/api/tasks",
            json={"title": "Plan trip", "description": "Lisbon", "dueDate": "2030-01-01"},
        )
    ).json()

    response = await client.patch(f"/api/tasks/{task['id']}", json={"priority": "low"})
    updated = response.json()

    assert updated["priority"] == "low"
    assert updated["description"] == "Lisbon"
    assert updated["dueDate"] == "2030-01-01"
    assert datetime.fromisoformat(updated["updatedAt"]) > datetime.fromisoformat(task["updatedAt"])

    cleared = await client.patch(f"/api/tasks/{task['id']}", json={"dueDate": None})
    assert cleared.json()["dueDate"] is None
    assert cleared.json()["description"] == "Lisbon"


@pytest.mark.asyncio
async def test_delete_task(client: AsyncClient) -> None:
    await signup_and_login(client, "alice", "a@x.com")
    task = (await client.post("/api/tasks", json={"title": "Gone soon"})).json()

    response = await client.delete(f"/api/tasks/{task['id']}")
    assert response.status_code == 204
    assert response.content == b""

    assert (await client.get(f"/api/tasks/{task['id']}")).status_code == 404
    assert (await client.delete(f"/api/tasks/{task['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_current_user_missing_record(app: FastAPI, client: AsyncClient) -> None:
    """A live session whose user row is gone reports 404, not someone else."""

    token = app.state.sessions.create(424242)
    client.cookies.set(
        COOKIE,
        encode_session_cookie(token, app.state.sessions.expires_at(token), "test-secret"),
    )
    response = await client.get("/api/auth/user")
    assert response.status_code == 404
    assert response.json() == {"message": "User not found"}


class _BrokenStorage(MemoryStorage):
    async def list_tasks(self, user_id: int):
        raise StoreFailure()


@pytest.mark.asyncio
async def test_store_failure_is_opaque(settings) -> None:
    app = create_app(settings, _BrokenStorage())
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        await signup_and_login(client, "alice", "a@x.com")
        response = await client.get("/api/tasks")

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}


@pytest.mark.asyncio
async def test_database_failure_is_opaque(settings, tmp_path) -> None:
    storage = DatabaseStorage.from_url(f"sqlite+aiosqlite:///{tmp_path / 'broken.db'}")
    await storage.create_schema()
    app = create_app(settings, storage)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
            await signup_and_login(client, "alice", "a@x.com")
            # Sessions live in memory, so the caller stays logged in.
            await storage.drop_schema()
            response = await client.get("/api/tasks")
    finally:
        await storage.close()

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}
