from __future__ import annotations

from ..extensions import db
from icestock.time_utils import to_utc_z, utcnow


class User(db.Model):
    """
    Shop owner account. Owns customers, products, managers, delivery partners,
    seller details and orders (every tenant-scoped row carries user_id).

    Email and GSTIN are globally unique: one shop per registration.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    contact = db.Column(db.String(20), nullable=True)
    shop_name = db.Column(db.String(255), nullable=False)
    shop_address = db.Column(db.Text, nullable=False)
    gstin = db.Column(db.String(15), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # Pending one-time passcode (signup verification, password reset/change)
    otp = db.Column(db.String(12), nullable=True)
    otp_expires = db.Column(db.DateTime, nullable=True)
    otp_requested_at = db.Column(db.DateTime, nullable=True)

    is_verified = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "contact": self.contact,
            "shopName": self.shop_name,
            "shopAddress": self.shop_address,
            "gstin": self.gstin,
            "isVerified": self.is_verified,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Manager(db.Model):
    """
    Staff login scoped to one admin (shop owner).

    A manager acts with the admin's identity for data access: login resolves
    to the admin's id as the effective owner, the manager's id travels alongside.
    """
    __tablename__ = "managers"
    __table_args__ = (
        db.UniqueConstraint("admin_id", "email", name="uq_managers_admin_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    contact = db.Column(db.String(20), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    otp = db.Column(db.String(12), nullable=True)
    otp_expires = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    admin = db.relationship("User", backref=db.backref("managers", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "adminId": self.admin_id,
            "name": self.name,
            "email": self.email,
            "contact": self.contact,
            "createdAt": to_utc_z(self.created_at),
        }
