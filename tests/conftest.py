from datetime import date

import pytest

from app import create_app
from auth import hash_password
from models import User, db

PASSWORD = "Str0ng!Pass"


@pytest.fixture
def app():
    app = create_app('testing')
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Insert an account directly and return its id."""
    def _make_user(username, is_private=False, password=PASSWORD):
        with app.app_context():
            user = User(
                first_name="Test",
                last_name=username.capitalize(),
                username=username,
                email=f"{username}@example.com",
                password_hash=hash_password(password),
                date_of_birth=date(1990, 1, 1),
                gender="other",
                is_private=is_private,
            )
            db.session.add(user)
            db.session.commit()
            return user.user_id
    return _make_user


@pytest.fixture
def login(app):
    """Sign in and return a test client carrying that user's cookie."""
    def _login(username, password=PASSWORD):
        user_client = app.test_client()
        response = user_client.post('/auth/signin', json={"username": username, "password": password})
        assert response.status_code == 200, response.get_json()
        return user_client
    return _login


@pytest.fixture
def create_post():
    def _create_post(user_client, caption="hello"):
        response = user_client.post('/posts/create', json={"caption": caption, "media": ["img/1.png"]})
        assert response.status_code == 200, response.get_json()
        return response.get_json()["data"]["post_id"]
    return _create_post
