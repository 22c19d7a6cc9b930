# Overview: Service-layer operations for shop accounts; signup, login, password reset and change.

"""
Shop Account Authentication Service

WHY: Shop owners (users) and their managers share one login endpoint. Login
resolves to a tagged identity so downstream code never has to guess which id
owns the data:

- AdminIdentity(user): the shop owner logged in directly.
- ManagerActingAsAdmin(user, manager): a manager logged in; data ownership
  stays with the admin (user), the manager id travels alongside.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS)
- Minimum 6 characters required
- Every OTP step goes through otp_service.default_policy
- Forgot-password never reveals whether an email is registered
"""

import re
from dataclasses import dataclass

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Manager
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    AuthenticationError,
    normalize_email,
    require_fields,
)
from .mail_service import send_mail, notify, otp_email
from .otp_service import default_policy
from icestock.time_utils import utcnow


GSTIN_RE = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$")
CONTACT_RE = re.compile(r"^[0-9]{10}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_PASSWORD_LENGTH = 6

# Sentinel accepted by reset_password(): only check the code, keep it for the real reset
OTP_CHECK_ONLY = "__OTP_CHECK__"


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class OtpCooldownError(Exception):
    """A new code was requested too soon after the previous one (HTTP 429)."""

    def __init__(self, wait_seconds: int):
        super().__init__("Too many requests. Please wait.")
        self.wait_seconds = wait_seconds


@dataclass(frozen=True)
class AdminIdentity:
    user: User

    role = "admin"

    @property
    def effective_user_id(self) -> int:
        return self.user.id

    def to_response(self) -> dict:
        return {
            "role": self.role,
            "effectiveUserId": self.user.id,
            "managerId": None,
            "user": {"_id": self.user.id, "email": self.user.email, "name": self.user.name},
        }


@dataclass(frozen=True)
class ManagerActingAsAdmin:
    user: User
    manager: Manager

    role = "manager"

    @property
    def effective_user_id(self) -> int:
        return self.user.id

    def to_response(self) -> dict:
        return {
            "role": self.role,
            "effectiveUserId": self.user.id,
            "managerId": self.manager.id,
            "user": {
                "_id": self.user.id,
                "email": self.manager.email,
                "name": self.manager.name,
                "adminEmail": self.user.email,
            },
        }


LoginIdentity = AdminIdentity | ManagerActingAsAdmin


def validate_password_strength(password) -> None:
    if not password or len(str(password)) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")


def hash_password(password: str, validate: bool = True) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    if validate:
        validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(str(password).encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password, password_hash: str | None) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(str(password).encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def validate_email_format(email: str) -> None:
    if not EMAIL_RE.match(email or ""):
        raise ValidationError("Invalid email address")


def validate_contact(contact) -> str:
    contact = str(contact or "").strip()
    if not CONTACT_RE.match(contact):
        raise ValidationError("Contact must be a 10-digit number")
    return contact


def _get_user(user_id) -> User:
    if not user_id:
        raise ValidationError("userId is required")
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _find_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=normalize_email(email)).first()


def _send_signup_code(user: User, code: str) -> None:
    text, html = otp_email(user.name, code, "account verification")
    send_mail(user.email, f'{current_app.config.get("APP_NAME")} - Your verification code', text=text, html=html)


# =============================================================================
# SIGNUP
# =============================================================================


def register_user(data: dict) -> User:
    """
    Create an unverified shop account and mail its verification code.

    Raises ValidationError for missing/invalid fields or a taken email/GSTIN,
    MailDeliveryError if the code could not be sent (the account stays,
    unverified; the user can resend).
    """
    require_fields(
        data, "name", "email", "contact", "shopName", "shopAddress", "gstin", "password",
        message="All fields are required",
    )

    email = normalize_email(data["email"])
    validate_email_format(email)
    contact = validate_contact(data["contact"])
    gstin = str(data["gstin"]).strip().upper()
    if not GSTIN_RE.match(gstin):
        raise ValidationError("Invalid GSTIN format")
    validate_password_strength(data["password"])

    existing = db.session.query(User).filter(db.or_(User.email == email, User.gstin == gstin)).first()
    if existing:
        raise ValidationError("Email or GSTIN already registered")

    user = User(
        name=str(data["name"]).strip(),
        email=email,
        contact=contact,
        shop_name=str(data["shopName"]).strip(),
        shop_address=str(data["shopAddress"]).strip(),
        gstin=gstin,
        password_hash=hash_password(data["password"]),
        is_verified=False,
    )
    code = default_policy.issue(user)
    user.otp_requested_at = utcnow()

    db.session.add(user)
    db.session.commit()

    _send_signup_code(user, code)
    return user


def _cooldown_remaining(user: User) -> int:
    if not user.otp_requested_at:
        return 0
    cooldown = int(current_app.config.get("OTP_RESEND_COOLDOWN_SECONDS", 60))
    elapsed = int((utcnow() - user.otp_requested_at).total_seconds())
    return max(0, cooldown - elapsed)


def resend_signup_otp(email: str) -> User:
    if not email:
        raise ValidationError("Email required")

    user = _find_user_by_email(email)
    if not user:
        raise NotFoundError("User not found")
    if user.is_verified:
        raise ValidationError("User already verified")

    wait = _cooldown_remaining(user)
    if wait > 0:
        raise OtpCooldownError(wait)

    code = default_policy.issue(user)
    user.otp_requested_at = utcnow()
    db.session.commit()

    _send_signup_code(user, code)
    return user


def verify_signup(email: str, otp) -> User:
    require_fields({"email": email, "otp": otp}, "email", "otp", message="Email and OTP are required")
    user = _find_user_by_email(email)

    def _mark_verified(u: User):
        u.is_verified = True

    default_policy.verify(user, otp, _mark_verified, subject="User")
    return user


# =============================================================================
# LOGIN
# =============================================================================


def login(email: str, password: str) -> LoginIdentity:
    """
    Authenticate a shop owner or one of their managers.

    Owners are matched first. A manager email may exist under several admins;
    the first one whose password matches wins.
    """
    require_fields({"email": email, "password": password}, "email", "password",
                   message="Email and password are required")
    email = normalize_email(email)

    user = _find_user_by_email(email)
    if user:
        if not user.is_verified:
            raise AuthenticationError("User not verified")
        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        return AdminIdentity(user=user)

    managers = db.session.query(Manager).filter_by(email=email).order_by(Manager.id).all()
    if not managers:
        raise NotFoundError("User not found")

    for manager in managers:
        if verify_password(password, manager.password_hash):
            admin = db.session.get(User, manager.admin_id)
            if not admin:
                raise NotFoundError("Admin not found")
            return ManagerActingAsAdmin(user=admin, manager=manager)

    raise AuthenticationError("Invalid credentials")


# =============================================================================
# FORGOT PASSWORD
# =============================================================================


def request_password_reset(email: str) -> None:
    """
    Mail a reset code if the account exists.

    Never reveals whether the email is registered: unknown emails and requests
    inside the cooldown window return silently. Mail failures are logged only.
    """
    email = normalize_email(email)
    if not email:
        raise ValidationError("Email is required")
    validate_email_format(email)

    user = _find_user_by_email(email)
    if not user:
        current_app.logger.info("Password reset requested for unknown email")
        return
    if _cooldown_remaining(user) > 0:
        return

    code = default_policy.issue(user)
    user.otp_requested_at = utcnow()
    db.session.commit()

    text, html = otp_email(user.name, code, "password reset")
    notify(user.email, f'{current_app.config.get("APP_NAME")} - Password reset code', text=text, html=html)


def reset_password(email: str, otp, new_password) -> bool:
    """
    Set a new password using a reset code.

    new_password == OTP_CHECK_ONLY validates the code without consuming it and
    returns False. Returns True once the password is changed.
    """
    require_fields({"email": email, "otp": otp}, "email", "otp", message="Email and OTP are required")
    user = _find_user_by_email(email)

    default_policy.check(user, otp, subject="User")
    if new_password == OTP_CHECK_ONLY:
        return False

    if not new_password:
        raise ValidationError("New password required")
    password_hash = hash_password(new_password)

    def _set_password(u: User):
        u.password_hash = password_hash

    default_policy.verify(user, otp, _set_password, subject="User")
    return True


# =============================================================================
# PROFILE
# =============================================================================


def get_profile(user_id) -> User:
    return _get_user(user_id)


def update_profile(user_id, data: dict) -> User:
    user = _get_user(user_id)

    if data.get("email") is not None:
        email = normalize_email(data["email"])
        validate_email_format(email)
        if email != user.email:
            taken = db.session.query(User).filter(User.email == email, User.id != user.id).first()
            if taken:
                raise ConflictError("Email already in use", record_id=taken.id)
            user.email = email

    if data.get("contact") is not None:
        user.contact = validate_contact(data["contact"])

    for key, attr in (("name", "name"), ("shopName", "shop_name"), ("shopAddress", "shop_address")):
        if data.get(key) is not None:
            value = str(data[key]).strip()
            if not value:
                raise ValidationError(f"{key} cannot be blank")
            setattr(user, attr, value)

    db.session.commit()
    return user


def change_password(user_id, old_password, new_password) -> None:
    require_fields(
        {"userId": user_id, "oldPassword": old_password, "newPassword": new_password},
        "userId", "oldPassword", "newPassword",
    )
    user = _get_user(user_id)
    if not verify_password(old_password, user.password_hash):
        raise ValidationError("Old password is wrong")
    user.password_hash = hash_password(new_password)
    db.session.commit()


def request_password_change_otp(user_id, old_password) -> None:
    """Confirm the current password, then mail a code. Mail failure propagates."""
    require_fields({"userId": user_id, "oldPassword": old_password}, "userId", "oldPassword",
                   message="userId and oldPassword are required")
    user = _get_user(user_id)
    if not verify_password(old_password, user.password_hash):
        raise ValidationError("Old password is incorrect")

    code = default_policy.issue(user)
    user.otp_requested_at = utcnow()
    db.session.commit()

    text, html = otp_email(user.name, code, "changing your password")
    send_mail(user.email, f'{current_app.config.get("APP_NAME")} - Password change code', text=text, html=html)


def verify_password_change(user_id, otp, new_password) -> None:
    require_fields(
        {"userId": user_id, "otp": otp, "newPassword": new_password},
        "userId", "otp", "newPassword",
        message="userId, otp and newPassword are required",
    )
    user = _get_user(user_id)
    password_hash = hash_password(new_password)

    def _set_password(u: User):
        u.password_hash = password_hash

    default_policy.verify(user, otp, _set_password, subject="User")
