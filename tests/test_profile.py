from datetime import date, timedelta

import database
from conftest import PASSWORD

DUE = (date.today() + timedelta(days=2)).isoformat()


def test_update_name(client, make_user):
    headers = make_user()
    r = client.put("/api/profile/update", json={"name": "Alice Cooper"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["user"]["slug"] == "alice-cooper-alice"
    assert database.db["users"].find_one({"email": "alice@example.com"})["name"] == "Alice Cooper"


def test_update_same_name_is_a_no_op(client, make_user):
    headers = make_user()
    r = client.put("/api/profile/update", json={"name": "Alice Smith"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["message"] == "No changes made"


def test_update_name_rejects_slug_collision(client, make_user):
    make_user(email="john.doe@work.com", name="John Doe")
    headers = make_user(email="johndoe@home.com", name="Jane Roe")
    r = client.put("/api/profile/update", json={"name": "John Doe"}, headers=headers)
    assert r.status_code == 409
    assert database.db["users"].find_one({"email": "johndoe@home.com"})["name"] == "Jane Roe"


def test_update_name_allows_same_name_with_different_slug(client, make_user):
    make_user(email="john@work.com", name="John Doe")
    headers = make_user(email="jdoe@home.com", name="Jane Roe")
    r = client.put("/api/profile/update", json={"name": "John Doe"}, headers=headers)
    assert r.status_code == 200


def test_update_name_too_short(client, make_user):
    headers = make_user()
    assert client.put("/api/profile/update", json={"name": "A"}, headers=headers).status_code == 400


def test_change_password(client, make_user):
    headers = make_user()
    body = {"current_password": PASSWORD, "new_password": "Better#2", "confirm_password": "Better#2"}
    r = client.post("/api/profile/change-password", json=body, headers=headers)
    assert r.status_code == 200

    assert client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD}).status_code == 401
    assert client.post("/api/auth/login", json={"email": "alice@example.com", "password": "Better#2"}).status_code == 200


def test_change_password_failures(client, make_user):
    headers = make_user()
    mismatch = {"current_password": PASSWORD, "new_password": "Better#2", "confirm_password": "Better#3"}
    r = client.post("/api/profile/change-password", json=mismatch, headers=headers)
    assert r.status_code == 400
    assert "Passwords don't match" in r.json()["detail"]

    wrong = {"current_password": "Nope#123", "new_password": "Better#2", "confirm_password": "Better#2"}
    r = client.post("/api/profile/change-password", json=wrong, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Current password is incorrect"


def test_change_password_for_oauth_account(client, make_user):
    headers = make_user()
    database.db["users"].update_one(
        {"email": "alice@example.com"}, {"$unset": {"password": ""}, "$set": {"auth_provider": "google"}}
    )
    body = {"current_password": PASSWORD, "new_password": "Better#2", "confirm_password": "Better#2"}
    r = client.post("/api/profile/change-password", json=body, headers=headers)
    assert r.status_code == 400
    assert "OAuth" in r.json()["detail"]


def test_upload_avatar(client, make_user):
    headers = make_user()
    files = {"avatar": ("me.png", b"\x89PNG fake", "image/png")}
    r = client.post("/api/profile/upload-avatar", files=files, headers=headers)
    assert r.status_code == 200
    assert r.json()["avatar"].startswith("data:image/png;base64,")

    session = client.get("/api/auth/session", headers=headers).json()
    assert session["user"]["avatar"] == r.json()["avatar"]


def test_upload_avatar_rejects_non_images_and_large_files(client, make_user):
    headers = make_user()
    r = client.post("/api/profile/upload-avatar", files={"avatar": ("a.txt", b"hello", "text/plain")}, headers=headers)
    assert r.status_code == 400

    big = b"0" * (2 * 1024 * 1024 + 1)
    r = client.post("/api/profile/upload-avatar", files={"avatar": ("a.png", big, "image/png")}, headers=headers)
    assert r.status_code == 400
    assert "2MB" in r.json()["detail"]


def test_upload_avatar_accepts_exactly_the_size_limit(client, make_user):
    headers = make_user()
    limit = b"0" * (2 * 1024 * 1024)
    r = client.post("/api/profile/upload-avatar", files={"avatar": ("a.png", limit, "image/png")}, headers=headers)
    assert r.status_code == 200


def test_delete_account_cascades_to_tasks(client, make_user):
    alice = make_user()
    bob = make_user(email="bob@example.com", name="Bob Stone")
    for title in ("Task one", "Task two"):
        client.post("/api/tasks", json={"title": title, "due_date": DUE}, headers=alice)
    client.post("/api/tasks", json={"title": "Bob task", "due_date": DUE}, headers=bob)

    r = client.delete("/api/profile/delete", headers=alice)
    assert r.status_code == 200
    assert database.db["users"].find_one({"email": "alice@example.com"}) is None
    assert database.db["tasks"].count_documents({"user_id": "alice@example.com"}) == 0
    assert database.db["tasks"].count_documents({"user_id": "bob@example.com"}) == 1

    # the old token no longer resolves to a user
    assert client.get("/api/tasks", headers=alice).status_code == 401
