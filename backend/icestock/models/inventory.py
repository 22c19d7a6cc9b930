from __future__ import annotations

from ..extensions import db
from icestock.time_utils import to_utc_z, utcnow


RESTOCK_NOTE = "Restocking"
EMPTY_STOCK_NOTE = "Empty Stock"


class Product(db.Model):
    """
    Stock item owned by a shop (user_id).

    quantity is on-hand stock; orders decrement it, discards and restocks add to it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_user_name", "user_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    unit = db.Column(db.String(16), nullable=False, default="piece")
    pack_quantity = db.Column(db.Float, nullable=True)
    pack_unit = db.Column(db.String(32), nullable=True)

    purchase_price = db.Column(db.Float, nullable=False)
    selling_price = db.Column(db.Float, nullable=False)
    mrp = db.Column(db.Float, nullable=True)

    quantity = db.Column(db.Float, nullable=False, default=0)
    min_stock = db.Column(db.Float, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True, default="")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_low_stock(self) -> bool:
        return (self.quantity or 0) <= (self.min_stock or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "packQuantity": self.pack_quantity,
            "packUnit": self.pack_unit,
            "purchasePrice": self.purchase_price,
            "sellingPrice": self.selling_price,
            "mrp": self.mrp,
            "quantity": self.quantity,
            "minStock": self.min_stock,
            "lowStock": self.is_low_stock,
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class RestockHistory(db.Model):
    """
    Append-only stock audit log.

    IMMUTABLE: one row per restock event or bulk "empty stock" action; items
    snapshot product name/category/unit at the time of the event.
    """
    __tablename__ = "restock_history"
    __table_args__ = (
        db.Index("ix_restock_history_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # [{productId, name, category, unit, quantity, note}]
    items = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "items": list(self.items or []),
            "createdAt": to_utc_z(self.created_at),
        }
