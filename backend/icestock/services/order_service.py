# Overview: Service-layer operations for orders; billing, settlement and delivery progress.

"""
Orders: billing, settlement and delivery.

STOCK + LEDGER EFFECTS:
- create: decrement product stock for items and free items; add the bill
  total to the customer's debit and total_sales.
- discard: exact reversal of create (stock back, debit/sales reverted).

SETTLEMENT:
- Unsettled -> settled on the first settle/discard.
- Debt marks the order settled with nothing paid; it stays in the Debt tab
  until the full total has been received.
- A payment reduces the customer's debit by at most the amount still
  outstanding on THIS order (and never below zero); any surplus becomes
  customer credit.

DELIVERY (partner side):
- Unassigned orders are claimed by the first approved partner of the shop
  who moves them forward.
- delivery_status only moves Pending -> On the Way -> Delivered; each
  timestamp is written once.
"""

from datetime import timedelta

from ..extensions import db
from ..models import Order, Product, Customer, DeliveryPartner, User
from ..models.orders import (
    ORDER_UNSETTLED,
    ORDER_SETTLED,
    DELIVERY_PENDING,
    DELIVERY_ON_THE_WAY,
    DELIVERY_DELIVERED,
    DELIVERY_STATUSES,
    DELIVERY_FLOW,
)
from ..validation import ValidationError, ConflictError, NotFoundError, require_fields, to_finite_float
from .access_service import AccessDeniedError, partner_shop_id
from icestock.time_utils import utcnow


METHOD_CASH = "Cash"
METHOD_BANK = "Bank/UPI"
METHOD_DEBT = "Debt"
METHOD_DISCARDED = "Discarded"

PAYMENT_METHODS = {METHOD_CASH, METHOD_BANK}
SETTLE_METHODS = PAYMENT_METHODS | {METHOD_DEBT}


def _to_int(value, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def _to_amount(value, name: str) -> float:
    if value in (None, ""):
        return 0.0
    return to_finite_float(value, name)


def _clean_items(items, name: str) -> list[dict]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError(f"{name} must be a list")
    cleaned = []
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError(f"{name} entries must be objects")
        item = dict(raw)
        item["quantity"] = _to_amount(item.get("quantity"), "quantity")
        if item["quantity"] < 0:
            raise ValidationError("quantity must be >= 0")
        if item.get("productId") not in (None, ""):
            item["productId"] = _to_int(item["productId"], "productId")
        cleaned.append(item)
    return cleaned


def _stock_lines(order: Order) -> dict[int, float]:
    """productId -> total quantity across items and free items."""
    totals: dict[int, float] = {}
    for item in list(order.items or []) + list(order.free_items or []):
        product_id = item.get("productId")
        qty = item.get("quantity") or 0
        if product_id and qty > 0:
            totals[product_id] = totals.get(product_id, 0) + abs(qty)
    return totals


def _apply_stock(order: Order, sign: int) -> None:
    lines = _stock_lines(order)
    if not lines:
        return
    products = db.session.query(Product).filter(
        Product.id.in_(lines.keys()),
        Product.user_id == order.user_id,
    ).all()
    for product in products:
        delta = lines[product.id]
        if sign < 0 and (product.quantity or 0) < delta:
            raise ValidationError(f"Insufficient stock for {product.name}")
        product.quantity = (product.quantity or 0) + sign * delta


# =============================================================================
# OWNER SIDE
# =============================================================================


def create_order(data: dict) -> Order:
    require_fields(data, "userId", "orderId", "serialNumber",
                   message="userId, orderId and serialNumber are required.")
    require_fields(data, "customerId", "customerName", "customerAddress", "customerContact",
                   message="Customer details are incomplete.")

    items = _clean_items(data.get("items"), "items")
    if not items:
        raise ValidationError("At least one bill item is required.")
    free_items = _clean_items(data.get("freeItems"), "freeItems")

    user_id = _to_int(data["userId"], "userId")
    customer = db.session.query(Customer).filter_by(
        id=_to_int(data["customerId"], "customerId"), user_id=user_id
    ).first()
    if not customer:
        raise NotFoundError("Customer not found")

    total = _to_amount(data.get("total"), "total")
    if total < 0:
        raise ValidationError("total must be >= 0")

    order = Order(
        user_id=user_id,
        order_code=str(data["orderId"]).strip(),
        serial_number=str(data["serialNumber"]).strip(),
        shop_name=data.get("shopName"),
        customer_id=customer.id,
        customer_name=str(data["customerName"]).strip(),
        customer_address=str(data["customerAddress"]).strip(),
        customer_contact=str(data["customerContact"]).strip(),
        customer_lat=customer.latitude,
        customer_lng=customer.longitude,
        items=items,
        free_items=free_items,
        quantity_summary=data.get("quantitySummary"),
        subtotal=_to_amount(data.get("subtotal"), "subtotal"),
        discount_percentage=_to_amount(data.get("discountPercentage"), "discountPercentage"),
        total=total,
        remarks=data.get("remarks"),
        status=ORDER_UNSETTLED,
        settlement_amount=0,
        settlement_history=[],
        delivery_status=DELIVERY_PENDING,
    )
    order.add_settlement_entry("Created")

    try:
        _apply_stock(order, -1)
    except ValidationError:
        db.session.rollback()
        raise

    if total > 0:
        customer.debit = (customer.debit or 0) + total
        customer.total_sales = (customer.total_sales or 0) + total

    db.session.add(order)
    db.session.commit()
    return order


def list_orders(user_id, status: str | None = None) -> list[Order]:
    if user_id in (None, ""):
        raise ValidationError("userId is required")
    query = db.session.query(Order).filter(Order.user_id == _to_int(user_id, "userId"))
    if status in (ORDER_UNSETTLED, ORDER_SETTLED):
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def _apply_payment(order: Order, pay_amount: float) -> None:
    """Reduce customer debit by what is still owed on this order; surplus goes to credit."""
    if not order.customer_id or pay_amount <= 0:
        return
    customer = db.session.get(Customer, order.customer_id)
    if not customer:
        return
    remaining = max(0.0, (order.total or 0) - (order.settlement_amount or 0))
    applied = min(pay_amount, remaining, max(0.0, customer.debit or 0))
    customer.debit = (customer.debit or 0) - applied
    surplus = pay_amount - applied
    if surplus > 0:
        customer.credit = (customer.credit or 0) + surplus


def _record_payment(order: Order, method: str, pay_amount: float, full_note: str, partial_note: str) -> None:
    _apply_payment(order, pay_amount)
    total_paid = (order.settlement_amount or 0) + pay_amount
    fully_paid = total_paid >= (order.total or 0)

    order.status = ORDER_SETTLED
    order.settlement_method = method if fully_paid else METHOD_DEBT
    order.settlement_amount = total_paid
    order.settled_at = utcnow()
    order.add_settlement_entry(
        "Settled", method=method, amountPaid=pay_amount,
        note=full_note if fully_paid else partial_note,
    )


def discard_order(order: Order) -> Order:
    if order.status != ORDER_UNSETTLED:
        raise ValidationError("Only Unsettled orders can be discarded.")

    _apply_stock(order, +1)

    if order.customer_id and order.total:
        customer = db.session.get(Customer, order.customer_id)
        if customer:
            customer.debit = (customer.debit or 0) - order.total
            customer.total_sales = (customer.total_sales or 0) - order.total

    order.status = ORDER_SETTLED
    order.discarded_at = utcnow()
    order.settlement_method = METHOD_DISCARDED
    order.settlement_amount = 0
    order.settled_at = None
    order.add_settlement_entry("Discarded", amountPaid=0)
    db.session.commit()
    return order


def settle_order(order: Order, method: str, amount=None) -> Order:
    if method not in SETTLE_METHODS:
        raise ValidationError("Invalid settlement method.")
    if order.status != ORDER_UNSETTLED and not (
        order.status == ORDER_SETTLED and order.settlement_method == METHOD_DEBT
    ):
        raise ValidationError("This order cannot be settled from this tab anymore.")

    if method == METHOD_DEBT:
        order.status = ORDER_SETTLED
        order.settlement_method = METHOD_DEBT
        order.settlement_amount = order.settlement_amount or 0
        order.settled_at = utcnow()
        order.add_settlement_entry("Settled", method=METHOD_DEBT, amountPaid=0, note="Marked as Debt")
        db.session.commit()
        return order

    pay_amount = max(0.0, _to_amount(amount, "amount"))
    if pay_amount <= 0:
        raise ValidationError("Payment amount must be greater than 0.")

    _record_payment(
        order, method, pay_amount,
        full_note="Fully settled from Unsettled tab",
        partial_note="Partial payment from Unsettled tab, remaining kept as Debt",
    )
    db.session.commit()
    return order


def settle_debt(order: Order, method: str, amount=None) -> Order:
    if order.settlement_method != METHOD_DEBT:
        raise ValidationError("Only Debt orders can be settled from the Debt tab.")
    if method not in PAYMENT_METHODS:
        raise ValidationError("Invalid settlement method for Debt.")

    pay_amount = max(0.0, _to_amount(amount, "amount"))
    if pay_amount <= 0:
        raise ValidationError("Payment amount must be greater than 0.")

    _record_payment(
        order, method, pay_amount,
        full_note="Debt fully settled",
        partial_note="Partial payment recorded, still Debt",
    )
    db.session.commit()
    return order


_ACTIONS = {
    "discard": lambda order, data: discard_order(order),
    "settle": lambda order, data: settle_order(order, data.get("method"), data.get("amount")),
    "settleDebt": lambda order, data: settle_debt(order, data.get("method"), data.get("amount")),
}


def apply_action(data: dict) -> Order:
    """Dispatch PATCH /api/orders by `action` (discard | settle | settleDebt)."""
    require_fields(data, "orderId", "userId", "action", message="orderId, userId and action are required.")
    handler = _ACTIONS.get(data["action"])
    if not handler:
        raise ValidationError("Invalid action.")

    order = db.session.query(Order).filter_by(
        id=_to_int(data["orderId"], "orderId"),
        user_id=_to_int(data["userId"], "userId"),
    ).first()
    if not order:
        raise NotFoundError("Order not found.")

    try:
        return handler(order, data)
    except ValidationError:
        db.session.rollback()
        raise


# =============================================================================
# PARTNER SIDE
# =============================================================================


def delivery_queue(partner: DeliveryPartner, only_unsettled: bool = True, user_id=None) -> list[dict]:
    """
    Undelivered orders the partner may work on: the shop's orders that are
    unassigned or already assigned to this partner. Coordinates fall back to
    the customer record, shop name to the owner's shop.
    """
    shop_id = partner_shop_id(partner, user_id)
    query = db.session.query(Order).filter(
        Order.user_id == shop_id,
        Order.delivery_status != DELIVERY_DELIVERED,
        Order.discarded_at.is_(None),
        db.or_(Order.delivery_partner_id.is_(None), Order.delivery_partner_id == partner.id),
    )
    if only_unsettled:
        query = query.filter(Order.status == ORDER_UNSETTLED)

    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
    if not orders:
        return []

    customer_ids = {o.customer_id for o in orders if o.customer_id}
    customers = {
        c.id: c for c in db.session.query(Customer).filter(Customer.id.in_(customer_ids)).all()
    } if customer_ids else {}
    owners = {
        u.id: u for u in db.session.query(User).filter(User.id.in_({o.user_id for o in orders})).all()
    }

    result = []
    for order in orders:
        data = order.delivery_dict()
        customer = customers.get(order.customer_id)
        if customer is not None:
            if data["customerLat"] is None and customer.latitude is not None:
                data["customerLat"] = customer.latitude
            if data["customerLng"] is None and customer.longitude is not None:
                data["customerLng"] = customer.longitude
        if not (data["shopName"] or "").strip():
            owner = owners.get(order.user_id)
            data["shopName"] = owner.shop_name if owner else None
        result.append(data)
    return result


def update_delivery_status(partner: DeliveryPartner, order_id, status: str, note: str | None = None,
                           user_id=None) -> Order:
    """
    Move an order one step forward, claiming it if unassigned.

    Raises AccessDeniedError when the order belongs to another shop or is
    assigned to another partner, ConflictError on any transition other than
    the next step in DELIVERY_FLOW.
    """
    if not order_id or not status:
        raise ValidationError("orderId and status required")
    if status not in DELIVERY_STATUSES:
        raise ValidationError("Invalid status")
    shop_id = partner_shop_id(partner, user_id)

    order = db.session.get(Order, _to_int(order_id, "orderId"))
    if not order:
        raise NotFoundError("Order not found")

    if order.user_id != shop_id:
        raise AccessDeniedError("Partner not associated with this shop")
    if order.delivery_partner_id is not None and order.delivery_partner_id != partner.id:
        raise AccessDeniedError("You are not assigned to this order")

    if DELIVERY_FLOW.get(order.delivery_status) != status:
        raise ConflictError("Invalid status transition", record_id=order.id)

    now = utcnow()
    if order.delivery_partner_id is None:
        order.delivery_partner_id = partner.id
        order.delivery_assigned_at = now

    order.delivery_status = status
    if status == DELIVERY_ON_THE_WAY and not order.delivery_on_the_way_at:
        order.delivery_on_the_way_at = now
    if status == DELIVERY_DELIVERED and not order.delivery_completed_at:
        order.delivery_completed_at = now
    if note:
        order.delivery_notes = str(note).strip()

    db.session.commit()
    return order


def _date_bucket(completed_at, now) -> str:
    if completed_at is None:
        return "older"
    today = now.date()
    day = completed_at.date()
    if day == today:
        return "today"
    if day == today - timedelta(days=1):
        return "yesterday"
    if (now - completed_at).days <= 7:
        return "this_week"
    return "older"


def delivered_orders(partner: DeliveryPartner) -> dict:
    orders = db.session.query(Order).filter_by(
        delivery_partner_id=partner.id,
        delivery_status=DELIVERY_DELIVERED,
    ).order_by(Order.delivery_completed_at.desc(), Order.id.desc()).all()

    now = utcnow()
    groups = {"today": [], "yesterday": [], "this_week": [], "older": []}
    for order in orders:
        groups[_date_bucket(order.delivery_completed_at, now)].append(order.delivery_dict())

    return {"total": len(orders), "groups": groups}
