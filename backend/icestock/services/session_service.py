# Overview: Service-layer operations for delivery partner sessions.

"""
Delivery Partner Session Tokens

WHY: Delivery partners authenticate with an opaque bearer token minted after
a successful login OTP. Tokens are cryptographically random and only their
SHA-256 hash is stored, so a database leak does not leak live sessions.

SESSION MODEL:
- One active session per partner: minting overwrites the stored hash,
  which implicitly revokes the previous token.
- No expiry of its own: the token is honoured only while the partner is
  approved, and that is re-checked on every request (see decorators).
"""

import secrets
import hashlib

from ..extensions import db
from ..models import DeliveryPartner


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 48-character hex string (24 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(24)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def mint_session(partner: DeliveryPartner) -> str:
    """
    Attach a new session to `partner` and return the plaintext token.

    Does NOT commit; called from inside OtpPolicy.verify(), which commits.
    """
    token = generate_token()
    partner.session_token_hash = hash_token(token)
    return token


def resolve_session(token: str) -> DeliveryPartner | None:
    """Look up the partner owning `token`. Status is NOT checked here."""
    if not token:
        return None
    return db.session.query(DeliveryPartner).filter_by(session_token_hash=hash_token(token)).first()


def revoke_session(partner: DeliveryPartner) -> None:
    partner.session_token_hash = None
    db.session.commit()
