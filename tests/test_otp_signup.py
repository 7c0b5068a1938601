from datetime import date, timedelta

import pytest

import config
from app import create_app
from extensions import mail
from models import OTPRecord, User, VerifiedEmail, db, utcnow

SIGNUP = {
    "first_name": "Alice",
    "last_name": "Smith",
    "username": "Alice",
    "email": "a@b.com",
    "password": "Str0ng!Pass",
    "date_of_birth": "1995-05-17",
    "gender": "female",
}


def stored_code(app, email):
    with app.app_context():
        return OTPRecord.query.filter_by(email=email).order_by(OTPRecord.otp_id.desc()).first().code


def verify_email(client, app, email):
    assert client.post('/otp/send-otp', json={"email": email}).status_code == 200
    code = stored_code(app, email)
    assert client.post('/otp/verify-otp', json={"email": email, "otp": code}).status_code == 200


def test_signup_requires_verified_email(client):
    response = client.post('/auth/signup', json=SIGNUP)
    assert response.status_code == 400
    assert response.get_json()["error"] == "Please verify your email before signup"


def test_signup_after_otp_verification_succeeds_once(app, client):
    verify_email(client, app, "a@b.com")

    response = client.post('/auth/signup', json=SIGNUP)
    assert response.status_code == 201

    with app.app_context():
        user = User.query.filter_by(email="a@b.com").one()
        assert user.username == "alice"
        assert user.password_hash != SIGNUP["password"]

    assert client.post('/auth/signup', json=SIGNUP).status_code == 409


def test_send_otp_mails_a_six_digit_code(app, client):
    with mail.record_messages() as outbox:
        response = client.post('/otp/send-otp', json={"email": "a@b.com"})
    assert response.status_code == 200

    code = stored_code(app, "a@b.com")
    assert len(code) == 6 and code.isdigit()
    assert len(outbox) == 1
    assert outbox[0].recipients == ["a@b.com"]
    assert code in outbox[0].body


def test_send_otp_rejects_missing_invalid_and_verified_email(app, client):
    assert client.post('/otp/send-otp', json={}).status_code == 400
    assert client.post('/otp/send-otp', json={"email": "not-an-email"}).status_code == 400

    verify_email(client, app, "a@b.com")
    response = client.post('/otp/send-otp', json={"email": "a@b.com"})
    assert response.status_code == 409
    assert response.get_json()["error"] == "Mail already verified"


def test_verify_otp_rejects_wrong_code(app, client):
    client.post('/otp/send-otp', json={"email": "a@b.com"})
    code = stored_code(app, "a@b.com")
    wrong = "000000" if code != "000000" else "111111"

    response = client.post('/otp/verify-otp', json={"email": "a@b.com", "otp": wrong})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Invalid or expired OTP"
    assert client.post('/otp/verify-otp', json={"email": "a@b.com"}).status_code == 400


def test_verify_otp_rejects_expired_code(app, client):
    with app.app_context():
        db.session.add(OTPRecord(
            email="a@b.com",
            code="123456",
            created_at=utcnow() - timedelta(seconds=app.config['OTP_TTL_SECONDS'] + 5),
        ))
        db.session.commit()

    response = client.post('/otp/verify-otp', json={"email": "a@b.com", "otp": "123456"})
    assert response.status_code == 400

    with app.app_context():
        assert VerifiedEmail.query.count() == 0


def test_verify_otp_twice_conflicts(app, client):
    verify_email(client, app, "a@b.com")
    response = client.post('/otp/verify-otp', json={"email": "a@b.com", "otp": "123456"})
    assert response.status_code == 409

    with app.app_context():
        assert OTPRecord.query.filter_by(email="a@b.com").count() == 0


@pytest.mark.parametrize("field, value", [
    ("date_of_birth", "2020-01-01"),
    ("date_of_birth", "17/05/1995"),
    ("password", "weakpass"),
    ("gender", "robot"),
])
def test_signup_validation(app, client, field, value):
    verify_email(client, app, "a@b.com")
    response = client.post('/auth/signup', json={**SIGNUP, field: value})
    assert response.status_code == 400


def test_signup_missing_fields(client):
    payload = dict(SIGNUP)
    payload.pop("gender")
    response = client.post('/auth/signup', json=payload)
    assert response.status_code == 400
    assert response.get_json()["error"] == "All required fields must be provided"


def test_send_otp_is_rate_limited(monkeypatch):
    monkeypatch.setattr(config.TestingConfig, "RATELIMIT_ENABLED", True)
    app = create_app('testing')
    client = app.test_client()

    assert client.post('/otp/send-otp', json={"email": "a@b.com"}).status_code == 200
    response = client.post('/otp/send-otp', json={"email": "c@d.com"})
    assert response.status_code == 429
    assert "error" in response.get_json()

    with app.app_context():
        db.drop_all()


def test_send_otp_purges_expired_codes(app, client):
    stale = utcnow() - timedelta(hours=1)
    with app.app_context():
        for code in ("111111", "222222", "333333"):
            db.session.add(OTPRecord(email="x@y.com", code=code, created_at=stale))
        db.session.add(OTPRecord(email="other@y.com", code="444444", created_at=stale))
        db.session.commit()

    assert client.post('/otp/send-otp', json={"email": "x@y.com"}).status_code == 200

    with app.app_context():
        assert OTPRecord.query.filter_by(email="x@y.com").count() == 1
        assert OTPRecord.query.filter_by(email="other@y.com").count() == 0


def years_ago(years, days=0):
    today = date.today()
    try:
        anchor = today.replace(year=today.year - years)
    except ValueError:
        # today is Feb 29
        anchor = today.replace(year=today.year - years, day=28)
    return anchor + timedelta(days=days)


@pytest.mark.parametrize("days, status", [
    (0, 201),
    (1, 400),
])
def test_signup_minimum_age_boundary(app, client, days, status):
    verify_email(client, app, "a@b.com")
    birth_date = years_ago(18, days).isoformat()

    response = client.post('/auth/signup', json={**SIGNUP, "date_of_birth": birth_date})
    assert response.status_code == status
