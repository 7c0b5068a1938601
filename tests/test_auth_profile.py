import pytest

from conftest import PASSWORD


def test_signin_sets_cookie_and_logout_clears_it(make_user, client):
    make_user("alice")

    response = client.post('/auth/signin', json={"username": "alice", "password": PASSWORD})
    assert response.status_code == 200
    assert response.get_json()["data"]["username"] == "alice"
    assert client.get_cookie("token") is not None

    data = client.get('/auth/get-user-data').get_json()["data"]
    assert data["email"] == "alice@example.com"
    assert data["followers"] == [] and data["blocked"] == []

    assert client.post('/auth/logout').status_code == 200
    assert client.get_cookie("token") is None
    assert client.get('/auth/get-user-data').status_code == 401


def test_signin_by_email_and_failures(make_user, client):
    make_user("alice")

    assert client.post('/auth/signin', json={"email": "alice@example.com", "password": PASSWORD}).status_code == 200
    assert client.post('/auth/signin', json={"username": "alice", "password": "Wr0ng!Pass"}).status_code == 401
    assert client.post('/auth/signin', json={"username": "nobody", "password": PASSWORD}).status_code == 404
    assert client.post('/auth/signin', json={"username": "alice"}).status_code == 400


def test_protected_routes_need_token(client):
    response = client.get('/posts/feed')
    assert response.status_code == 401
    assert "error" in response.get_json()


def test_change_password(make_user, login, client):
    make_user("alice")
    user_client = login("alice")

    response = user_client.patch('/auth/change-password', json={"old_password": "Wr0ng!Pass", "new_password": "N3w!Password"})
    assert response.status_code == 401
    response = user_client.patch('/auth/change-password', json={"old_password": PASSWORD, "new_password": "short"})
    assert response.status_code == 400
    response = user_client.patch('/auth/change-password', json={"old_password": PASSWORD, "new_password": "N3w!Password"})
    assert response.status_code == 200

    assert client.post('/auth/signin', json={"username": "alice", "password": PASSWORD}).status_code == 401
    assert client.post('/auth/signin', json={"username": "alice", "password": "N3w!Password"}).status_code == 200


def test_profile_updates_only_by_owner(make_user, login):
    alice = make_user("alice")
    bob = make_user("bob")
    client = login("alice")

    response = client.patch(f'/profile/{alice}', json={"first_name": "Alicia", "bio": "hello there"})
    assert response.status_code == 200
    assert response.get_json()["data"]["first_name"] == "Alicia"
    assert response.get_json()["data"]["bio"] == "hello there"

    assert client.patch(f'/profile/{alice}', json={"bio": "no"}).status_code == 400
    assert client.patch(f'/profile/{bob}', json={"bio": "hijacked"}).status_code == 401

    response = client.patch(f'/profile/{alice}/profile-picture', json={"profile_picture": "img/me.png"})
    assert response.get_json()["data"]["profile_picture"] == "img/me.png"
    assert client.patch(f'/profile/{bob}/profile-picture', json={"profile_picture": "x.png"}).status_code == 401


def test_privacy_toggle(make_user, login):
    alice = make_user("alice")
    bob = make_user("bob")
    client = login("alice")

    response = client.patch(f'/profile/{alice}/privacy', json={"is_private": True})
    assert response.status_code == 200
    assert response.get_json()["data"]["is_private"] is True
    assert client.patch(f'/profile/{alice}/privacy', json={"is_private": "yes"}).status_code == 400
    assert client.patch(f'/profile/{bob}/privacy', json={"is_private": True}).status_code == 401


def test_private_profile_hides_posts_from_non_followers(make_user, login, create_post):
    alice = make_user("alice", is_private=True)
    make_user("bob")
    alice_client = login("alice")
    create_post(alice_client)
    bob_client = login("bob")

    profile = bob_client.get(f'/profile/{alice}').get_json()["data"]
    assert profile["can_view"] is False
    assert profile["posts_count"] == 1
    assert "posts" not in profile

    request_id = bob_client.post(f'/follow-requests/{alice}').get_json()["data"]["request_id"]
    alice_client.patch(f'/follow-requests/review/{request_id}/accepted')

    profile = bob_client.get(f'/profile/{alice}').get_json()["data"]
    assert profile["can_view"] is True
    assert profile["is_following"] is True
    assert len(profile["posts"]) == 1


def test_blocked_profile_is_not_found(make_user, login):
    alice = make_user("alice")
    bob = make_user("bob")
    login("alice").patch(f'/follow-request/block/{bob}')

    bob_client = login("bob")
    assert bob_client.get(f'/profile/{alice}').status_code == 404
    assert bob_client.get('/profile/9999').status_code == 404


@pytest.mark.parametrize("method, path, body", [
    ("post", "/auth/signin", ["x"]),
    ("post", "/auth/signin", {"username": 5, "password": PASSWORD}),
    ("post", "/auth/signup", {"first_name": "Al", "last_name": "Smith", "username": "al",
                              "email": "al@example.com", "password": PASSWORD,
                              "date_of_birth": "1990-01-01", "gender": 1}),
    ("patch", "/auth/change-password", {"old_password": PASSWORD, "new_password": 12345678}),
    ("post", "/otp/send-otp", {"email": 5}),
    ("post", "/otp/verify-otp", {"email": ["a@b.com"], "otp": "123456"}),
    ("patch", "/profile/{user_id}", {"first_name": 5}),
    ("patch", "/profile/{user_id}", {"bio": ["too", "long"]}),
    ("post", "/posts/create", {"caption": {"text": "hi"}, "media": ["a.jpg"]}),
    ("post", "/posts/create", "just a string"),
])
def test_malformed_field_types_are_rejected(make_user, login, method, path, body):
    user_id = make_user("alice")
    user_client = login("alice")

    response = getattr(user_client, method)(path.format(user_id=user_id), json=body)
    assert response.status_code == 400
    assert "error" in response.get_json()
