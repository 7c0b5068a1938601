# Email verification: OTP generation, delivery and verification
import logging
import secrets
from datetime import timedelta
from smtplib import SMTPException

from flask import current_app
from flask_mail import Message

from errors import ConflictError, InternalError, ValidationError
from extensions import mail
from forms import require_string, validate_email
from models import OTPRecord, VerifiedEmail, db, save_changes, utcnow

logger = logging.getLogger(__name__)

OTP_TEMPLATE = """
<div style="font-family:Arial,sans-serif; max-width:480px; margin:auto;">
  <h2>Verify your email</h2>
  <p>Use the code below to finish signing up. It expires in {minutes} minutes.</p>
  <p style="font-size:32px; font-weight:bold; letter-spacing:4px; color:#2E7D32;">{code}</p>
  <p>If you did not request this code you can ignore this email.</p>
</div>
"""


def generate_otp():
    return f"{secrets.randbelow(1_000_000):06d}"


def is_verified(email):
    return VerifiedEmail.query.filter_by(email=email).first() is not None


def _expiry_cutoff():
    return utcnow() - timedelta(seconds=current_app.config['OTP_TTL_SECONDS'])


def _normalize(email):
    email = require_string(email or '', "Please enter a valid email address").lower()
    if not email:
        raise ValidationError("Email is required")
    if not validate_email(email):
        raise ValidationError("Please enter a valid email address")
    return email


def send_otp(email):
    email = _normalize(email)
    if is_verified(email):
        raise ConflictError("Mail already verified")

    code = generate_otp()
    ttl = current_app.config['OTP_TTL_SECONDS']
    message = Message(
        subject="Your OTP Code",
        recipients=[email],
        body=f"Your verification code is {code}",
        html=OTP_TEMPLATE.format(code=code, minutes=max(ttl // 60, 1)),
    )
    try:
        mail.send(message)
    except (SMTPException, OSError) as e:
        logger.exception("Failed to send OTP to %s", email)
        raise InternalError("Failed to send OTP email") from e

    # purge expired codes
    OTPRecord.query.filter(OTPRecord.created_at < _expiry_cutoff())\
        .delete(synchronize_session=False)
    db.session.add(OTPRecord(email=email, code=code))
    save_changes()
    logger.info("OTP sent to %s", email)


def verify_otp(email, code):
    if not email or not code:
        raise ValidationError("Email and OTP are required")
    email = require_string(email, "Please enter a valid email address").lower()
    if not isinstance(code, (str, int)):
        raise ValidationError("Invalid or expired OTP")

    if is_verified(email):
        raise ConflictError("Mail already verified")

    record = OTPRecord.query.filter(
        OTPRecord.email == email,
        OTPRecord.code == str(code).strip(),
        OTPRecord.created_at >= _expiry_cutoff(),
    ).first()
    if not record:
        raise ValidationError("Invalid or expired OTP")

    OTPRecord.query.filter_by(email=email).delete()
    db.session.add(VerifiedEmail(email=email))
    save_changes(conflict_message="Mail already verified")
    logger.info("Email verified: %s", email)
