# Credential service: password hashing, access tokens and account sign-up
import logging

from flask import jsonify
from flask_jwt_extended import create_access_token

from errors import AuthError, ConflictError, NotFoundError, ValidationError
from extensions import bcrypt, jwt
from forms import (GENDERS, MINIMUM_AGE, age_on, parse_birth_date, require_fields,
                   validate_email, validate_name, validate_password)
from models import User, VerifiedEmail, db, save_changes

logger = logging.getLogger(__name__)

SIGNUP_FIELDS = ['first_name', 'last_name', 'username', 'email', 'password',
                 'date_of_birth', 'gender']
WEAK_PASSWORD = ("Password must be at least 8 characters long and include uppercase, "
                 "lowercase, number, and symbol")


def hash_password(raw_password):
    return bcrypt.generate_password_hash(raw_password).decode('utf-8')


def verify_password(raw_password, password_hash):
    return bcrypt.check_password_hash(password_hash, raw_password)


def issue_token(user):
    return create_access_token(identity=str(user.user_id))


# JWT callbacks: resolve current_user and render token failures as JSON
@jwt.user_lookup_loader
def load_user(_jwt_header, jwt_data):
    return db.session.get(User, int(jwt_data['sub']))


@jwt.user_lookup_error_loader
def user_lookup_failed(_jwt_header, _jwt_data):
    return jsonify({"error": "Please log in"}), 401


@jwt.unauthorized_loader
def missing_token(_reason):
    return jsonify({"error": "No token, please log in"}), 401


@jwt.invalid_token_loader
def invalid_token(_reason):
    return jsonify({"error": "Please log in"}), 401


@jwt.expired_token_loader
def expired_token(_jwt_header, _jwt_data):
    return jsonify({"error": "Session expired, please log in again"}), 401


def signup(data):
    """Create an account for an email that has completed OTP verification."""
    require_fields(data, SIGNUP_FIELDS)
    if not all(isinstance(data[key], str) for key in SIGNUP_FIELDS):
        raise ValidationError("All fields must be text")

    email = data['email'].strip().lower()
    username = data['username'].strip().lower()

    if not validate_email(email):
        raise ValidationError("Please enter a valid email address")

    if VerifiedEmail.query.filter_by(email=email).first() is None:
        raise ValidationError("Please verify your email before signup")

    if User.query.filter_by(username=username).first():
        raise ConflictError("Username already taken")
    if User.query.filter_by(email=email).first():
        raise ConflictError("Email already registered")

    if not 2 <= len(username) <= 15:
        raise ValidationError("Username must be between 2 and 15 characters")

    birth_date = parse_birth_date(data['date_of_birth'])
    if age_on(birth_date) < MINIMUM_AGE:
        raise ValidationError("You must be at least 18 years old")

    gender = data['gender'].strip().lower()
    if gender not in GENDERS:
        raise ValidationError(f"{data['gender']} is not a valid gender")

    if not validate_password(data['password']):
        raise ValidationError(WEAK_PASSWORD)

    user = User(
        first_name=validate_name(data['first_name'], 'First name'),
        last_name=validate_name(data['last_name'], 'Last name'),
        username=username,
        email=email,
        password_hash=hash_password(data['password']),
        date_of_birth=birth_date,
        gender=gender,
    )
    db.session.add(user)
    save_changes(conflict_message="Username or email already exists")
    logger.info("Registered user %s (%s)", user.user_id, user.username)
    return user


def signin(identifier, password):
    """Return (user, token) for a username or email and password."""
    if not identifier or not password:
        raise ValidationError("Please provide username/email and password")
    if not isinstance(identifier, str) or not isinstance(password, str):
        raise ValidationError("Username/email and password must be text")

    identifier = identifier.strip().lower()
    user = User.query.filter(
        (User.username == identifier) | (User.email == identifier)
    ).first()
    if not user:
        raise NotFoundError("User does not exist")

    if not verify_password(password, user.password_hash):
        raise AuthError("Invalid credentials")

    return user, issue_token(user)


def change_password(user, old_password, new_password):
    if not old_password or not new_password:
        raise ValidationError("Old and new password are required")
    if not isinstance(old_password, str) or not isinstance(new_password, str):
        raise ValidationError("Passwords must be text")

    if not verify_password(old_password, user.password_hash):
        raise AuthError("Invalid credentials")

    if not validate_password(new_password):
        raise ValidationError(WEAK_PASSWORD)

    user.password_hash = hash_password(new_password)
    save_changes()
    logger.info("Password changed for user %s", user.user_id)
