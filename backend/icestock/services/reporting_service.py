# Overview: Service-layer operations for reporting; sales summary and customer ledger.

"""
Sales reports for a shop.

DATE RANGES:
- from/to are inclusive calendar bounds: from is the start of its day, to
  covers the whole day (half-open [from, to + 1 day)).
- Either bound may be omitted; neither means "everything".

SUMMARY:
- Sales and unit quantities come from non-discarded orders created in range.
- Cash and Bank/UPI received come from "Settled" history entries whose own
  timestamp falls in range (a bill from last week paid today counts today).
- Overall debit/credit are the customers' current balances, not date-limited.

LEDGER:
- One Sale entry per order created in range, one Payment entry per paid
  settlement, Adjustment entries for Debt marks and discards.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from ..extensions import db
from ..models import Order, Customer
from ..validation import ValidationError, NotFoundError, PRODUCT_UNITS
from .access_service import AccessDeniedError
from icestock.time_utils import parse_iso_datetime, to_utc_z


METHOD_CASH = "Cash"
METHOD_BANK = "Bank/UPI"
METHOD_DEBT = "Debt"


def _to_id(value, name: str) -> int:
    if value in (None, ""):
        raise ValidationError(f"{name} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def _parse_bound(value: str | None, name: str) -> datetime | None:
    if value in (None, ""):
        return None
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")
    return dt


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    """(inclusive start, exclusive end) with `end` widened to cover its whole day."""
    start_dt = _parse_bound(start, "from")
    end_dt = _parse_bound(end, "to")
    if end_dt is not None:
        end_dt = end_dt + timedelta(days=1)
    if start_dt and end_dt and start_dt >= end_dt:
        raise ValidationError("from must not be after to")
    return start_dt, end_dt


def _within(at: datetime | None, start: datetime | None, end: datetime | None) -> bool:
    if at is None:
        return start is None and end is None
    if start is not None and at < start:
        return False
    if end is not None and at >= end:
        return False
    return True


def _entry_time(entry: dict, fallback: datetime | None) -> datetime | None:
    raw = entry.get("at")
    if not raw:
        return fallback
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        return fallback


def _number(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _empty_quantities() -> dict:
    return {unit: 0.0 for unit in sorted(PRODUCT_UNITS)}


def _day(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d")


def _daily_row(daily: dict, key: str) -> dict:
    if key not in daily:
        daily[key] = {
            "date": key,
            "totalSales": 0.0,
            "totalOrders": 0,
            "quantities": _empty_quantities(),
            "cashReceived": 0.0,
            "bankReceived": 0.0,
        }
    return daily[key]


def sales_summary(*, user_id, start: str | None = None, end: str | None = None) -> dict:
    user_id = _to_id(user_id, "userId")
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(Order).filter(
        Order.user_id == user_id,
        Order.discarded_at.is_(None),
    )
    if start_dt:
        query = query.filter(Order.created_at >= start_dt)
    if end_dt:
        query = query.filter(Order.created_at < end_dt)
    orders = query.order_by(Order.created_at.asc(), Order.id.asc()).all()

    daily: dict[str, dict] = {}
    quantities = _empty_quantities()
    total_sales = 0.0

    for order in orders:
        row = _daily_row(daily, _day(order.created_at))
        total = _number(order.total)
        total_sales += total
        row["totalSales"] += total
        row["totalOrders"] += 1

        summary = order.quantity_summary if isinstance(order.quantity_summary, dict) else {}
        for unit in quantities:
            qty = _number(summary.get(unit))
            quantities[unit] += qty
            row["quantities"][unit] += qty

    # Payments are dated by the settlement, so orders created before the
    # range may still contribute
    payment_query = db.session.query(Order).filter(
        Order.user_id == user_id,
        Order.discarded_at.is_(None),
        Order.settlement_amount > 0,
    )
    cash = 0.0
    bank = 0.0
    for order in payment_query.all():
        for entry in order.settlement_history or []:
            if entry.get("action") != "Settled":
                continue
            at = _entry_time(entry, order.settled_at or order.created_at)
            if (start_dt or end_dt) and not _within(at, start_dt, end_dt):
                continue
            amount = _number(entry.get("amountPaid"))
            method = entry.get("method")
            if method not in (METHOD_CASH, METHOD_BANK) or amount <= 0:
                continue
            row = _daily_row(daily, _day(at))
            if method == METHOD_CASH:
                cash += amount
                row["cashReceived"] += amount
            else:
                bank += amount
                row["bankReceived"] += amount

    overall_debit, overall_credit = db.session.query(
        db.func.coalesce(db.func.sum(Customer.debit), 0),
        db.func.coalesce(db.func.sum(Customer.credit), 0),
    ).filter(Customer.user_id == user_id).one()
    overall_debit = float(overall_debit)
    overall_credit = float(overall_credit)
    net_receivable = overall_debit - overall_credit

    return {
        "userId": user_id,
        "from": to_utc_z(start_dt),
        "to": to_utc_z(end_dt - timedelta(days=1)) if end_dt else None,
        "totalSales": total_sales,
        "totalOrders": len(orders),
        "quantities": quantities,
        "paymentBreakdown": {
            "cash": cash,
            "bank": bank,
            "outstandingDebt": max(0.0, net_receivable),
        },
        "overallDebit": overall_debit,
        "overallCredit": overall_credit,
        "netReceivable": net_receivable,
        "daily": [daily[key] for key in sorted(daily)],
    }


def _ledger_entry(order: Order, suffix: str, kind: str, at: datetime, note: str,
                  debit: float = 0.0, credit: float = 0.0, method: str | None = None) -> dict:
    return {
        "id": f"{order.id}-{suffix}",
        "type": kind,
        "at": to_utc_z(at),
        "orderId": order.id,
        "orderCode": order.order_code,
        "serialNumber": order.serial_number,
        "method": method,
        "note": note,
        "debit": debit,
        "credit": credit,
    }


def customer_ledger(*, user_id, customer_id, manager_id=None,
                    start: str | None = None, end: str | None = None) -> dict:
    """
    Chronological debit/credit history of one customer.

    Managers are refused: the ledger exposes the shop's full receivables.
    """
    if user_id in (None, "") or customer_id in (None, ""):
        raise ValidationError("userId and customerId are required")
    if manager_id not in (None, ""):
        raise AccessDeniedError("Access denied: Managers are not allowed")

    user_id = _to_id(user_id, "userId")
    start_dt, end_dt = _parse_range(start, end)

    customer = db.session.query(Customer).filter_by(
        id=_to_id(customer_id, "customerId"), user_id=user_id
    ).first()
    if not customer:
        raise NotFoundError("Customer not found")

    orders = db.session.query(Order).filter_by(
        user_id=user_id, customer_id=customer.id
    ).order_by(Order.created_at.asc(), Order.id.asc()).all()

    ledger = []
    for order in orders:
        total = _number(order.total)
        if _within(order.created_at, start_dt, end_dt):
            ledger.append(_ledger_entry(
                order, "sale", "Sale", order.created_at,
                f"Bill created (Order #{order.order_code})", debit=total,
            ))

        for index, entry in enumerate(order.settlement_history or []):
            at = _entry_time(entry, order.created_at)
            if not _within(at, start_dt, end_dt):
                continue
            action = entry.get("action")
            if action == "Settled":
                amount = _number(entry.get("amountPaid"))
                method = entry.get("method") or "Unknown"
                if amount > 0:
                    ledger.append(_ledger_entry(
                        order, f"settle-{index}", "Payment", at,
                        f"Payment ({method}) for Order #{order.order_code}",
                        credit=amount, method=method,
                    ))
                elif method == METHOD_DEBT:
                    ledger.append(_ledger_entry(
                        order, f"debt-{index}", "Adjustment", at,
                        entry.get("note") or "Marked as Debt", method=METHOD_DEBT,
                    ))
            elif action == "Discarded":
                ledger.append(_ledger_entry(
                    order, f"discard-{index}", "Adjustment", at,
                    f"Bill discarded (Order #{order.order_code})", credit=total,
                ))

    ledger.sort(key=lambda e: (e["at"] or "", e["id"]))

    debit = _number(customer.debit)
    credit = _number(customer.credit)
    return {
        "customer": {
            "id": customer.id,
            "name": customer.name,
            "shopName": customer.shop_name,
            "debit": debit,
            "credit": credit,
            "totalSales": _number(customer.total_sales),
        },
        "ledger": ledger,
        "totals": {
            "debit": debit,
            "credit": credit,
            "netBalance": debit - credit,
        },
    }
