from __future__ import annotations

from ..extensions import db
from icestock.time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Retail customer of a shop.

    Running balances: debit grows with each order total and shrinks with
    payments; overpayments accumulate in credit; total_sales tracks billed value.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_user_name", "user_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    contacts = db.Column(db.JSON, nullable=False, default=list)
    shop_name = db.Column(db.String(255), nullable=False)
    shop_address = db.Column(db.Text, nullable=False)

    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    credit = db.Column(db.Float, nullable=False, default=0)
    debit = db.Column(db.Float, nullable=False, default=0)
    total_sales = db.Column(db.Float, nullable=False, default=0)
    remarks = db.Column(db.Text, nullable=True, default="")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def location_dict(self) -> dict | None:
        if self.latitude is None and self.longitude is None:
            return None
        return {"latitude": self.latitude, "longitude": self.longitude}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "contacts": list(self.contacts or []),
            "shopName": self.shop_name,
            "shopAddress": self.shop_address,
            "location": self.location_dict(),
            "credit": self.credit,
            "debit": self.debit,
            "totalSales": self.total_sales,
            "remarks": self.remarks,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
