from __future__ import annotations

from ..extensions import db
from icestock.time_utils import to_utc_z, utcnow


ORDER_UNSETTLED = "Unsettled"
ORDER_SETTLED = "settled"

DELIVERY_PENDING = "Pending"
DELIVERY_ON_THE_WAY = "On the Way"
DELIVERY_DELIVERED = "Delivered"
DELIVERY_STATUSES = {DELIVERY_PENDING, DELIVERY_ON_THE_WAY, DELIVERY_DELIVERED}

# Only forward, one step at a time
DELIVERY_FLOW = {
    DELIVERY_PENDING: DELIVERY_ON_THE_WAY,
    DELIVERY_ON_THE_WAY: DELIVERY_DELIVERED,
}


class Order(db.Model):
    """
    Bill issued by a shop to a customer, with settlement and delivery tracking.

    SETTLEMENT: status Unsettled -> settled. settlement_method is Cash,
    Bank/UPI, Debt (partially or not paid) or Discarded. settlement_history is
    an append-only JSON list.

    DELIVERY: unassigned orders may be claimed by any approved partner of the
    shop; delivery_status only moves forward (see DELIVERY_FLOW).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_status", "user_id", "status"),
        db.Index("ix_orders_partner_delivery", "delivery_partner_id", "delivery_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    order_code = db.Column(db.String(64), nullable=False)
    serial_number = db.Column(db.String(64), nullable=True)
    shop_name = db.Column(db.String(255), nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_name = db.Column(db.String(128), nullable=True)
    customer_address = db.Column(db.Text, nullable=True)
    customer_contact = db.Column(db.String(20), nullable=True)
    customer_lat = db.Column(db.Float, nullable=True)
    customer_lng = db.Column(db.Float, nullable=True)

    # [{productId, productName, quantity, unit, price, total}]
    items = db.Column(db.JSON, nullable=False, default=list)
    free_items = db.Column(db.JSON, nullable=False, default=list)
    quantity_summary = db.Column(db.JSON, nullable=True)

    subtotal = db.Column(db.Float, nullable=False, default=0)
    discount_percentage = db.Column(db.Float, nullable=False, default=0)
    total = db.Column(db.Float, nullable=False, default=0)
    remarks = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_UNSETTLED, index=True)
    settlement_method = db.Column(db.String(16), nullable=True)
    settlement_amount = db.Column(db.Float, nullable=False, default=0)
    settlement_history = db.Column(db.JSON, nullable=False, default=list)
    settled_at = db.Column(db.DateTime, nullable=True)
    discarded_at = db.Column(db.DateTime, nullable=True, index=True)

    delivery_partner_id = db.Column(
        db.Integer, db.ForeignKey("delivery_partners.id", ondelete="SET NULL"), nullable=True
    )
    delivery_status = db.Column(db.String(16), nullable=False, default=DELIVERY_PENDING, index=True)
    delivery_assigned_at = db.Column(db.DateTime, nullable=True)
    delivery_on_the_way_at = db.Column(db.DateTime, nullable=True)
    delivery_completed_at = db.Column(db.DateTime, nullable=True)
    delivery_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def add_settlement_entry(self, action: str, **extra) -> None:
        entry = {"action": action, "at": to_utc_z(utcnow())}
        entry.update({k: v for k, v in extra.items() if v is not None})
        # Reassign so SQLAlchemy notices the JSON change
        self.settlement_history = list(self.settlement_history or []) + [entry]

    def delivery_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.order_code,
            "userId": self.user_id,
            "shopName": self.shop_name,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "customerContact": self.customer_contact,
            "customerAddress": self.customer_address,
            "customerLat": self.customer_lat,
            "customerLng": self.customer_lng,
            "items": list(self.items or []),
            "total": self.total,
            "deliveryStatus": self.delivery_status,
            "deliveryPartnerId": self.delivery_partner_id,
            "deliveryAssignedAt": to_utc_z(self.delivery_assigned_at),
            "deliveryOnTheWayAt": to_utc_z(self.delivery_on_the_way_at),
            "deliveryCompletedAt": to_utc_z(self.delivery_completed_at),
            "deliveryNotes": self.delivery_notes,
            "createdAt": to_utc_z(self.created_at),
        }

    def to_dict(self) -> dict:
        data = self.delivery_dict()
        data.update({
            "serialNumber": self.serial_number,
            "freeItems": list(self.free_items or []),
            "quantitySummary": self.quantity_summary,
            "subtotal": self.subtotal,
            "discountPercentage": self.discount_percentage,
            "remarks": self.remarks,
            "status": self.status,
            "settlementMethod": self.settlement_method,
            "settlementAmount": self.settlement_amount,
            "settlementHistory": list(self.settlement_history or []),
            "settledAt": to_utc_z(self.settled_at),
            "discardedAt": to_utc_z(self.discarded_at),
            "updatedAt": to_utc_z(self.updated_at),
        })
        return data


class StickyNote(db.Model):
    """Informal order request, usually jotted down by a delivery partner at a customer's shop."""
    __tablename__ = "sticky_notes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    delivery_partner_id = db.Column(
        db.Integer, db.ForeignKey("delivery_partners.id", ondelete="SET NULL"), nullable=True, index=True
    )

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    customer_name = db.Column(db.String(128), nullable=False)
    shop_name = db.Column(db.String(255), nullable=False)

    # [{productName, quantity, unit}]
    items = db.Column(db.JSON, nullable=False, default=list)
    total_quantity = db.Column(db.Float, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "deliveryPartnerId": self.delivery_partner_id,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "shopName": self.shop_name,
            "items": list(self.items or []),
            "totalQuantity": self.total_quantity,
            "createdAt": to_utc_z(self.created_at),
        }
