"""
Billing ledger: folds guest orders into one bill per stay and records payments.

A bill only stores the running `total_amount` and `paid_amount`; the balance
and the status are recomputed from those two numbers every time a bill is
read, so they cannot drift from each other.

Concurrent `add_order_to_bill` / `record_payment` calls for the same guest are
not serialised. Each write is a single-document `$inc`/`$push`, so totals stay
consistent, but the overpayment check in `record_payment` reads before it
writes and can be raced.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Union

import pydantic
from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database

from database import create_document, parse_object_id, serialize_doc, utcnow
from errors import NotFoundError, ValidationError
from schemas import Bill, BillItem, Payment

logger = logging.getLogger(__name__)

PENDING = "pending"
PARTIALLY_PAID = "partially_paid"
PAID = "paid"
STATUSES = (PENDING, PARTIALLY_PAID, PAID)


def _money(value: float) -> float:
    return round(float(value), 2)


def derive_status(total: float, paid: float, order_count: int) -> str:
    total, paid = _money(total), _money(paid)
    if order_count > 0 and _money(total - paid) == 0:
        return PAID
    if 0 < paid < total:
        return PARTIALLY_PAID
    return PENDING


def bill_view(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a bill document and attach the derived balance and status."""
    view = serialize_doc(doc)
    total = _money(doc.get("total_amount", 0))
    paid = _money(doc.get("paid_amount", 0))
    view["total_amount"] = total
    view["paid_amount"] = paid
    view["balance_amount"] = _money(total - paid)
    view["status"] = derive_status(total, paid, len(doc.get("orders", [])))
    return view


def _open_bill_query(guest_id: str) -> Dict[str, Any]:
    return {"guest_id": guest_id, "is_guest_checked_out": False}


def _find_guest(db: Database, guest_id: str) -> Dict[str, Any]:
    try:
        oid = parse_object_id(guest_id)
    except ValueError:
        raise NotFoundError("Guest not found")
    guest = db["guest"].find_one({"_id": oid})
    if not guest:
        raise NotFoundError("Guest not found")
    return guest


def _next_bill_number(db: Database) -> str:
    count = db["bill"].count_documents({})
    return f"BILL-{str(int(time.time() * 1000))[-6:]}-{count + 1:03d}"


def _open_bill_for(db: Database, guest: Dict[str, Any]) -> Dict[str, Any]:
    guest_id = str(guest["_id"])
    bill = db["bill"].find_one(_open_bill_query(guest_id))
    if bill:
        return bill
    new_bill = Bill(
        bill_number=_next_bill_number(db),
        guest_id=guest_id,
        guest_name=guest["name"],
        room_number=guest["room_number"],
    )
    bill_id = create_document("bill", new_bill, database=db)
    logger.info(f"Created bill {new_bill.bill_number} for guest {guest['name']} (room {guest['room_number']})")
    return db["bill"].find_one({"_id": ObjectId(bill_id)})


def add_order_to_bill(db: Database, guest_id: str, order: Dict[str, Any]) -> Dict[str, Any]:
    """Fold `order` into the guest's open bill, opening a bill when there is none.

    A bill that is already settled is reopened: its total grows and the
    derived status falls back to partially paid.
    """
    total = _money(order.get("total_amount") or 0)
    if total <= 0:
        raise ValidationError("Order total must be greater than zero")
    order_id = order.get("_id") or order.get("id")
    if not order_id:
        raise ValidationError("Order has no id")
    order_id = str(order_id)

    guest = _find_guest(db, guest_id)
    if guest.get("checked_out"):
        raise ValidationError("Guest has already checked out")

    bill = _open_bill_for(db, guest)
    if order_id in bill.get("orders", []):
        raise ValidationError("Order is already on the bill")

    items = [
        BillItem(
            description=f"{item['name']} x{item['quantity']}",
            amount=_money(item["total"]),
            quantity=item["quantity"],
            unit_price=_money(item["unit_price"]),
            order_id=order_id,
        ).model_dump()
        for item in order.get("items", [])
    ]
    db["bill"].update_one(
        {"_id": bill["_id"]},
        {
            "$push": {"orders": order_id, "items": {"$each": items}},
            "$inc": {"total_amount": total},
            "$set": {"updated_at": utcnow()},
        },
    )
    updated = bill_view(db["bill"].find_one({"_id": bill["_id"]}))
    logger.info(
        f"Added order {order.get('order_number', order_id)} to bill {updated['bill_number']}"
        f" (total {updated['total_amount']}, status {updated['status']})"
    )
    return updated


def record_payment(db: Database, guest_id: str, payment: Union[Payment, Dict[str, Any]]) -> Dict[str, Any]:
    if not isinstance(payment, Payment):
        try:
            payment = Payment(**payment)
        except pydantic.ValidationError as exc:
            raise ValidationError(str(exc))
    amount = _money(payment.amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")

    bill = db["bill"].find_one(_open_bill_query(guest_id))
    if not bill:
        raise NotFoundError("No active bill found for guest")
    balance = _money(bill.get("total_amount", 0) - bill.get("paid_amount", 0))
    if amount > balance:
        raise ValidationError(f"Payment of {amount} exceeds outstanding balance of {balance}")

    entry = payment.model_dump()
    entry["amount"] = amount
    entry["date"] = utcnow()
    db["bill"].update_one(
        {"_id": bill["_id"]},
        {
            "$push": {"payments": entry},
            "$inc": {"paid_amount": amount},
            "$set": {"updated_at": utcnow()},
        },
    )
    updated = bill_view(db["bill"].find_one({"_id": bill["_id"]}))
    logger.info(f"Recorded payment of {amount} ({payment.method}) for bill {updated['bill_number']}")
    return updated


def get_bill(db: Database, guest_id: str) -> Dict[str, Any]:
    """Return the guest's open bill, or the latest closed one."""
    bill = db["bill"].find_one(_open_bill_query(guest_id))
    if not bill:
        bill = db["bill"].find_one({"guest_id": guest_id}, sort=[("created_at", DESCENDING)])
    if not bill:
        raise NotFoundError("No bill found for this guest")
    return bill_view(bill)


def list_bills(db: Database, status: Optional[str] = None, include_checked_out: bool = False) -> List[Dict[str, Any]]:
    if status is not None and status not in STATUSES:
        raise ValidationError(f"Invalid status: {status}")
    query: Dict[str, Any] = {} if include_checked_out else {"is_guest_checked_out": False}
    views = [bill_view(doc) for doc in db["bill"].find(query).sort("created_at", DESCENDING)]
    if status:
        views = [v for v in views if v["status"] == status]
    return views


def mark_guest_checked_out(db: Database, guest_id: str) -> Optional[Dict[str, Any]]:
    bill = db["bill"].find_one(_open_bill_query(guest_id))
    if not bill:
        return None
    db["bill"].update_one(
        {"_id": bill["_id"]},
        {"$set": {"is_guest_checked_out": True, "updated_at": utcnow()}},
    )
    logger.info(f"Marked bill {bill['bill_number']} as guest checked out")
    return bill_view(db["bill"].find_one({"_id": bill["_id"]}))


def billing_stats(db: Database) -> Dict[str, Any]:
    stats: Dict[str, Any] = {
        status: {"count": 0, "total_amount": 0.0, "total_paid": 0.0, "total_balance": 0.0} for status in STATUSES
    }
    open_bills = 0
    for doc in db["bill"].find({}):
        view = bill_view(doc)
        bucket = stats[view["status"]]
        bucket["count"] += 1
        bucket["total_amount"] = _money(bucket["total_amount"] + view["total_amount"])
        bucket["total_paid"] = _money(bucket["total_paid"] + view["paid_amount"])
        bucket["total_balance"] = _money(bucket["total_balance"] + view["balance_amount"])
        if not view.get("is_guest_checked_out"):
            open_bills += 1
    stats["total_revenue"] = _money(sum(stats[s]["total_paid"] for s in STATUSES))
    stats["total_outstanding"] = _money(sum(stats[s]["total_balance"] for s in STATUSES))
    stats["open_bills"] = open_bills
    return stats
