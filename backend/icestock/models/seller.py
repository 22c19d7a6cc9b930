from __future__ import annotations

from ..extensions import db
from icestock.time_utils import to_utc_z, utcnow


class SellerDetails(db.Model):
    """Invoicing metadata for a shop (one row per user): GST, logo, payment QR, signature."""
    __tablename__ = "seller_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    seller_name = db.Column(db.String(255), nullable=False)
    gst_number = db.Column(db.String(15), nullable=False)
    full_address = db.Column(db.Text, nullable=False)
    logo_url = db.Column(db.String(512), nullable=True)
    logo_public_id = db.Column(db.String(255), nullable=True)
    qr_code_url = db.Column(db.String(512), nullable=False)
    qr_public_id = db.Column(db.String(255), nullable=True)
    signature_url = db.Column(db.String(512), nullable=False)
    signature_public_id = db.Column(db.String(255), nullable=True)
    slogan = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "sellerName": self.seller_name,
            "gstNumber": self.gst_number,
            "fullAddress": self.full_address,
            "logoUrl": self.logo_url,
            "logoPublicId": self.logo_public_id,
            "qrCodeUrl": self.qr_code_url,
            "qrPublicId": self.qr_public_id,
            "signatureUrl": self.signature_url,
            "signaturePublicId": self.signature_public_id,
            "slogan": self.slogan,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class BankDetails(db.Model):
    """Payout bank account printed on invoices (one row per seller details)."""
    __tablename__ = "bank_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(
        db.Integer, db.ForeignKey("seller_details.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    bank_name = db.Column(db.String(128), nullable=False)
    ifsc_code = db.Column(db.String(11), nullable=False)
    branch_name = db.Column(db.String(128), nullable=False)
    banking_name = db.Column(db.String(128), nullable=False)
    account_number = db.Column(db.String(34), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    seller = db.relationship("SellerDetails", backref=db.backref("bank_details", uselist=False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sellerId": self.seller_id,
            "bankName": self.bank_name,
            "ifscCode": self.ifsc_code,
            "branchName": self.branch_name,
            "bankingName": self.banking_name,
            "accountNumber": self.account_number,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
