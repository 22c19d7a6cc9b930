from __future__ import annotations

from ..extensions import db
from icestock.time_utils import to_utc_z, utcnow


PARTNER_PENDING = "pending"
PARTNER_APPROVED = "approved"
PARTNER_REJECTED = "rejected"
PARTNER_STATUSES = {PARTNER_PENDING, PARTNER_APPROVED, PARTNER_REJECTED}


class DeliveryPartner(db.Model):
    """
    Delivery partner: identity, credentials and lifecycle in one row.

    LIFECYCLE: pending -> approved | rejected; rejected -> pending only through
    re-registration under the same (email, created_by_user_id) pair, which
    reuses this row. Approved partners never go back to pending by registering.

    SESSIONS: one active session per partner. Only the SHA-256 of the opaque
    token is stored; minting a new token overwrites the previous one. A token
    authorizes only while status is approved.
    """
    __tablename__ = "delivery_partners"
    __table_args__ = (
        db.Index("ix_delivery_partners_email_owner", "email", "created_by_user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(128), nullable=False)
    # Lowercased + trimmed; lookup key but not unique (a partner may work for several shops)
    email = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(20), nullable=False, default="")
    password_hash = db.Column(db.String(255), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=PARTNER_PENDING, index=True)

    otp = db.Column(db.String(12), nullable=True)
    otp_expires = db.Column(db.DateTime, nullable=True)

    session_token_hash = db.Column(db.String(64), nullable=True, unique=True, index=True)

    # Owning shop; null for partners registered straight to an admin
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    admin_id = db.Column(db.String(64), nullable=True)
    admin_email = db.Column(db.String(255), nullable=True, index=True)

    notified_at = db.Column(db.DateTime, nullable=True)

    last_latitude = db.Column(db.Float, nullable=True)
    last_longitude = db.Column(db.Float, nullable=True)
    location_updated_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = db.relationship("User", backref=db.backref("delivery_partners", lazy=True))

    @property
    def is_approved(self) -> bool:
        return self.status == PARTNER_APPROVED

    def location_dict(self) -> dict | None:
        if self.last_latitude is None or self.last_longitude is None:
            return None
        return {
            "latitude": self.last_latitude,
            "longitude": self.last_longitude,
            "updatedAt": to_utc_z(self.location_updated_at),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone or None,
            "status": self.status,
            "createdByUser": self.created_by_user_id,
            "adminId": self.admin_id,
            "adminEmail": self.admin_email,
            "notifiedAt": to_utc_z(self.notified_at),
            "lastLocation": self.location_dict(),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class SearchHistory(db.Model):
    """Per-partner log of customer lookups. Read back newest first, capped."""
    __tablename__ = "search_history"
    __table_args__ = (
        db.Index("ix_search_history_partner_created", "partner_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(db.Integer, db.ForeignKey("delivery_partners.id", ondelete="CASCADE"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    name = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "partnerId": self.partner_id,
            "customerId": self.customer_id,
            "name": self.name,
            "createdAt": to_utc_z(self.created_at),
        }
