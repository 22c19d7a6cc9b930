# Overview: Service-layer operations for products and the restock audit trail.

"""
Product stock and restock history.

- Products are scoped to a shop (user_id); every lookup filters on it.
- restock() and empty_stock() write an append-only RestockHistory record that
  snapshots the products touched.
- empty_stock() commits the zeroed quantities first and the history record
  second. A history failure is reported to the caller, not rolled back.
"""

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, RestockHistory
from ..models.inventory import RESTOCK_NOTE, EMPTY_STOCK_NOTE
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    NotFoundError,
    to_finite_float,
)


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "unit", "pack_quantity", "pack_unit",
        "purchase_price", "selling_price", "mrp", "quantity", "min_stock", "notes",
    },
    required_on_create={"name", "unit", "purchase_price", "selling_price", "quantity"},
    aliases={
        "packQuantity": "pack_quantity",
        "packUnit": "pack_unit",
        "purchasePrice": "purchase_price",
        "sellingPrice": "selling_price",
        "minStock": "min_stock",
    },
)

# Keys that travel with product payloads but are not product fields
_ENVELOPE_KEYS = {"id", "_id", "userId", "createdAt", "updatedAt", "lowStock"}


def _user_id(value) -> int:
    if value in (None, ""):
        raise ValidationError("User ID required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("userId must be an integer")


def _fields(data: dict) -> dict:
    return {k: v for k, v in (data or {}).items() if k not in _ENVELOPE_KEYS}


def _history_item(product: Product, quantity: float, note: str) -> dict:
    return {
        "productId": product.id,
        "name": product.name,
        "category": product.category or "",
        "unit": product.unit or "piece",
        "quantity": quantity,
        "note": note,
    }


def get_product(user_id, product_id) -> Product:
    if product_id in (None, ""):
        raise ValidationError("Product ID and User ID required")
    product = db.session.query(Product).filter_by(id=product_id, user_id=_user_id(user_id)).first()
    if not product:
        raise NotFoundError("Product not found or not authorized")
    return product


def create_product(data: dict) -> Product:
    user_id = _user_id(data.get("userId"))
    patch = validate_payload(model=Product, payload=_fields(data), policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    product = Product(user_id=user_id, **patch)
    db.session.add(product)
    db.session.commit()
    return product


def list_products(user_id) -> list[Product]:
    return db.session.query(Product).filter_by(user_id=_user_id(user_id)).order_by(
        Product.created_at.desc(), Product.id.desc()
    ).all()


def update_product(data: dict) -> Product:
    product = get_product(data.get("userId"), data.get("id"))
    patch = validate_payload(model=Product, payload=_fields(data), policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def delete_product(user_id, product_id) -> int:
    product = get_product(user_id, product_id)
    db.session.delete(product)
    db.session.commit()
    return product.id


def restock(user_id, items) -> RestockHistory:
    """
    Add quantities to products and record one history entry for the batch.

    items: [{productId, quantity, note?}], quantities must be > 0.
    """
    user_id = _user_id(user_id)
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one restock item is required")

    history_items = []
    for raw in items:
        if not isinstance(raw, dict):
            db.session.rollback()
            raise ValidationError("Restock items must be objects")
        try:
            qty = to_finite_float(raw.get("quantity"), "quantity")
            if qty <= 0:
                raise ValidationError("quantity must be greater than 0")
        except ValidationError:
            db.session.rollback()
            raise

        product = db.session.query(Product).filter_by(id=raw.get("productId"), user_id=user_id).first()
        if not product:
            db.session.rollback()
            raise NotFoundError("Product not found or not authorized")

        product.quantity = (product.quantity or 0) + qty
        history_items.append(_history_item(product, qty, raw.get("note") or RESTOCK_NOTE))

    entry = RestockHistory(user_id=user_id, items=history_items)
    db.session.add(entry)
    db.session.commit()
    return entry


def empty_stock(user_id) -> dict:
    """
    Zero every product of the shop and log the removed quantities.

    Returns the response body: {message, emptied[, historyError]}.
    """
    user_id = _user_id(user_id)
    products = db.session.query(Product).filter_by(user_id=user_id).all()
    if not products:
        return {"message": "No products found for user", "emptied": False}

    history_items = [_history_item(p, p.quantity or 0, EMPTY_STOCK_NOTE) for p in products]
    for product in products:
        product.quantity = 0
    db.session.commit()

    try:
        db.session.add(RestockHistory(user_id=user_id, items=history_items))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Stock emptied for user %s but history was not recorded", user_id)
        return {
            "message": "All product quantities set to 0, but failed to record history",
            "emptied": True,
            "historyError": str(e),
        }

    return {"message": "All product quantities set to 0", "emptied": True}


def add_history(user_id, items) -> RestockHistory:
    """Record a history entry supplied by the client (no stock change)."""
    user_id = _user_id(user_id)
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    entry = RestockHistory(user_id=user_id, items=[dict(i) for i in items if isinstance(i, dict)])
    db.session.add(entry)
    db.session.commit()
    return entry


def list_history(user_id) -> list[RestockHistory]:
    if user_id in (None, ""):
        raise ValidationError("userId required")
    return db.session.query(RestockHistory).filter_by(user_id=_user_id(user_id)).order_by(
        RestockHistory.created_at.desc(), RestockHistory.id.desc()
    ).all()
