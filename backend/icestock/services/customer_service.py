# Overview: Service-layer operations for customers; scoped CRUD with balance fields owned by orders.

from ..extensions import db
from ..models import Customer, SearchHistory
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    ValidationError,
    NotFoundError,
)


# credit / debit / total_sales are maintained by order settlement, not by clients
CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contacts", "shop_name", "shop_address", "latitude", "longitude", "remarks"},
    required_on_create={"name", "contacts", "shop_name", "shop_address"},
    aliases={"shopName": "shop_name", "shopAddress": "shop_address"},
)

_ENVELOPE_KEYS = {"id", "_id", "userId", "createdAt", "updatedAt", "credit", "debit", "totalSales", "location"}


def _user_id(value) -> int:
    if value in (None, ""):
        raise ValidationError("User ID required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("userId must be an integer")


def _fields(data: dict) -> dict:
    fields = {k: v for k, v in (data or {}).items() if k not in _ENVELOPE_KEYS}
    # Clients send coordinates nested as location: {latitude, longitude}
    location = (data or {}).get("location")
    if isinstance(location, dict):
        fields.setdefault("latitude", location.get("latitude"))
        fields.setdefault("longitude", location.get("longitude"))
    return fields


def get_customer(user_id, customer_id) -> Customer:
    if customer_id in (None, ""):
        raise ValidationError("Customer ID and User ID required")
    customer = db.session.query(Customer).filter_by(id=customer_id, user_id=_user_id(user_id)).first()
    if not customer:
        raise NotFoundError("Customer not found or not authorized")
    return customer


def create_customer(data: dict) -> Customer:
    user_id = _user_id(data.get("userId"))
    patch = validate_payload(model=Customer, payload=_fields(data), policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)

    customer = Customer(user_id=user_id, credit=0, debit=0, total_sales=0, **patch)
    if customer.remarks is None:
        customer.remarks = ""
    db.session.add(customer)
    db.session.commit()
    return customer


def list_customers(user_id) -> list[Customer]:
    return db.session.query(Customer).filter_by(user_id=_user_id(user_id)).order_by(
        Customer.created_at.desc(), Customer.id.desc()
    ).all()


def update_customer(data: dict) -> Customer:
    customer = get_customer(data.get("userId"), data.get("id"))
    patch = validate_payload(model=Customer, payload=_fields(data), policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_customer(patch)

    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()
    return customer


def delete_customer(user_id, customer_id) -> int:
    customer = get_customer(user_id, customer_id)
    db.session.query(SearchHistory).filter_by(customer_id=customer.id).delete()
    db.session.delete(customer)
    db.session.commit()
    return customer.id
