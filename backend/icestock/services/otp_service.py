# Overview: Service-layer operations for one-time passcodes; single policy shared by every OTP flow.

"""
One-Time Passcode Policy

Every OTP flow in the system (shop signup, forgot password, profile password
change, manager password change, delivery login, delivery password change)
goes through OtpPolicy. The flows differ only in which record holds the code
and in what happens after a successful check.

RULES:
- One outstanding code per record: issue() overwrites code and expiry.
- Codes are 6 random digits, zero-padded, valid for 10 minutes.
- An expired code is cleared (and committed) before the failure is reported,
  so it can never be retried.
- Comparison trims and string-normalizes both sides.
- A successful check consumes the code.
"""

import secrets
from datetime import timedelta
from typing import Callable

from flask import current_app

from ..extensions import db
from ..validation import NotFoundError
from icestock.time_utils import utcnow


class OtpError(Exception):
    """Base class for OTP verification failures (HTTP 400)."""
    pass


class OtpNotRequestedError(OtpError):
    def __init__(self, message: str = "OTP not requested"):
        super().__init__(message)


class OtpExpiredError(OtpError):
    def __init__(self, message: str = "OTP expired"):
        super().__init__(message)


class OtpMismatchError(OtpError):
    def __init__(self, message: str = "Invalid OTP"):
        super().__init__(message)


def generate_code(length: int = 6) -> str:
    """Uniform random decimal code, zero-padded to `length` digits."""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def _normalize(value) -> str:
    return str(value if value is not None else "").strip()


class OtpPolicy:
    """
    Issue/verify one-time codes stored on a model instance.

    code_attr / expires_attr name the columns holding the code and its expiry,
    so the same policy serves User, Manager and DeliveryPartner.
    """

    def __init__(
        self,
        code_attr: str = "otp",
        expires_attr: str = "otp_expires",
        length: int | None = None,
        ttl: timedelta | None = None,
    ):
        self.code_attr = code_attr
        self.expires_attr = expires_attr
        self._length = length
        self._ttl = ttl

    @property
    def length(self) -> int:
        if self._length is not None:
            return self._length
        return int(current_app.config.get("OTP_LENGTH", 6))

    @property
    def ttl(self) -> timedelta:
        if self._ttl is not None:
            return self._ttl
        return timedelta(minutes=int(current_app.config.get("OTP_TTL_MINUTES", 10)))

    def issue(self, record) -> str:
        """
        Store a fresh code on `record` and return it.

        Does NOT commit; the caller commits together with its own changes.
        """
        code = generate_code(self.length)
        setattr(record, self.code_attr, code)
        setattr(record, self.expires_attr, utcnow() + self.ttl)
        return code

    def clear(self, record) -> None:
        setattr(record, self.code_attr, None)
        setattr(record, self.expires_attr, None)

    def check(self, record, submitted, *, subject: str = "Record") -> None:
        """
        Validate `submitted` against `record` without consuming the code.

        Raises NotFoundError, OtpNotRequestedError, OtpExpiredError (after
        clearing + committing) or OtpMismatchError.
        """
        if record is None:
            raise NotFoundError(f"{subject} not found")

        stored = getattr(record, self.code_attr)
        expires = getattr(record, self.expires_attr)
        if not stored or not expires:
            raise OtpNotRequestedError()

        if utcnow() >= expires:
            self.clear(record)
            db.session.commit()
            raise OtpExpiredError()

        if _normalize(submitted) != _normalize(stored):
            raise OtpMismatchError()

    def verify(
        self,
        record,
        submitted,
        on_success: Callable | None = None,
        *,
        subject: str = "Record",
    ):
        """
        Check and consume the code, then run on_success(record) and commit.

        Returns whatever on_success returns (e.g. a freshly minted session token).
        """
        self.check(record, submitted, subject=subject)

        self.clear(record)
        result = on_success(record) if on_success else None
        db.session.commit()
        return result


# Shared instance for every model using the default otp / otp_expires columns
default_policy = OtpPolicy()
