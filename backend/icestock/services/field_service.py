# Overview: Service-layer operations for partner field tools; lookups, search history and sticky notes.

"""
Field tools used by delivery partners while on the road.

Everything here is scoped to the partner's shop (created_by_user_id). Partners
registered without a shop must name the shop explicitly (userId).
"""

from ..extensions import db
from ..models import Customer, Product, SearchHistory, StickyNote, DeliveryPartner
from ..validation import ValidationError, NotFoundError, require_fields, to_finite_float
from .access_service import partner_shop_id


SEARCH_LIMIT = 10
HISTORY_LIMIT = 20


def _like(q: str | None) -> str:
    # Escape LIKE wildcards; user input is a plain substring
    q = (q or "").strip().lower()
    q = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{q}%"


def search_customers(partner: DeliveryPartner, q: str | None, user_id=None) -> list[dict]:
    shop_id = partner_shop_id(partner, user_id)
    customers = db.session.query(Customer).filter(
        Customer.user_id == shop_id,
        db.func.lower(Customer.name).like(_like(q), escape="\\"),
    ).order_by(Customer.name).limit(SEARCH_LIMIT).all()
    return [
        {
            "id": c.id,
            "name": c.name,
            "shopName": c.shop_name,
            "shopAddress": c.shop_address,
            "contacts": list(c.contacts or []),
        }
        for c in customers
    ]


def search_products(partner: DeliveryPartner, q: str | None, user_id=None) -> list[dict]:
    shop_id = partner_shop_id(partner, user_id)
    products = db.session.query(Product).filter(
        Product.user_id == shop_id,
        db.func.lower(Product.name).like(_like(q), escape="\\"),
    ).order_by(Product.name).limit(SEARCH_LIMIT).all()
    return [
        {
            "id": p.id,
            "name": p.name,
            "category": p.category,
            "unit": p.unit,
            "price": p.selling_price,
            "quantity": p.quantity,
        }
        for p in products
    ]


def customer_details(partner: DeliveryPartner, customer_id) -> dict:
    if customer_id in (None, ""):
        raise ValidationError("customerId required")
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    if partner.created_by_user_id is not None and customer.user_id != partner.created_by_user_id:
        raise NotFoundError("Customer not found")
    return {
        "id": customer.id,
        "name": customer.name,
        "shopName": customer.shop_name,
        "shopAddress": customer.shop_address,
        "contacts": list(customer.contacts or []),
        "location": customer.location_dict(),
    }


def list_search_history(partner: DeliveryPartner) -> list[SearchHistory]:
    return db.session.query(SearchHistory).filter_by(partner_id=partner.id).order_by(
        SearchHistory.created_at.desc(), SearchHistory.id.desc()
    ).limit(HISTORY_LIMIT).all()


def record_search(partner: DeliveryPartner, customer_id, name) -> SearchHistory:
    require_fields({"customerId": customer_id, "name": name}, "customerId", "name",
                   message="customerId and name required")
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    entry = SearchHistory(partner_id=partner.id, customer_id=customer.id, name=str(name).strip())
    db.session.add(entry)
    db.session.commit()
    return entry


def list_sticky_notes(partner: DeliveryPartner) -> list[StickyNote]:
    return db.session.query(StickyNote).filter_by(delivery_partner_id=partner.id).order_by(
        StickyNote.created_at.desc(), StickyNote.id.desc()
    ).all()


def _note_items(items) -> list[dict]:
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    cleaned = []
    for raw in items:
        if not isinstance(raw, dict) or not str(raw.get("productName") or "").strip():
            raise ValidationError("Each item needs a productName")
        qty = to_finite_float(raw.get("quantity") or 0, "quantity")
        if qty < 0:
            raise ValidationError("quantity must be >= 0")
        cleaned.append({
            "productName": str(raw["productName"]).strip(),
            "quantity": qty,
            "unit": str(raw.get("unit") or "").strip(),
        })
    return cleaned


def create_sticky_note(partner: DeliveryPartner, data: dict) -> StickyNote:
    """Sticky note for the partner's shop; total_quantity is the sum of item quantities."""
    require_fields(data, "customerName", message="customerName required")
    shop_id = partner_shop_id(partner, data.get("userId"))

    customer = None
    if data.get("customerId") not in (None, ""):
        customer = db.session.query(Customer).filter_by(id=data["customerId"], user_id=shop_id).first()
        if not customer:
            raise NotFoundError("Customer not found")

    shop_name = str(data.get("shopName") or (customer.shop_name if customer else "")).strip()
    if not shop_name:
        raise ValidationError("shopName required")

    items = _note_items(data.get("items") or [])
    note = StickyNote(
        user_id=shop_id,
        delivery_partner_id=partner.id,
        customer_id=customer.id if customer else None,
        customer_name=str(data["customerName"]).strip(),
        shop_name=shop_name,
        items=items,
        total_quantity=sum(i["quantity"] for i in items),
    )
    db.session.add(note)
    db.session.commit()
    return note
