import logging
import os
import random
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import socketio
from bson import ObjectId
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from pymongo import DESCENDING
from pymongo.database import Database

import ledger
from auth import get_current_user
from auth import router as auth_router
from config import configure_logging, get_settings
from database import client, create_document, get_documents, parse_object_id, serialize_doc, utcnow
from entry import router as entry_router
from entry import validate_room_number
from errors import ValidationError, register_exception_handlers
from mailer import router as contact_router
from notifications import notify_new_ticket, notify_ticket_updated, sio
from schemas import Guest, GuestInfo, MenuItem, Order, OrderItem, OrderStatus, PaymentMethod, Ticket, TicketMessage, TicketPriority, TicketStatus
from tenancy import get_tenant_db
from tenancy import router as hotel_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Innexora Hotel Management API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

app.include_router(hotel_router)
app.include_router(auth_router)
app.include_router(entry_router)
app.include_router(contact_router)


# ----------------------------
# Helpers
# ----------------------------
def find_by_id(db: Database, collection: str, item_id: str, label: str) -> Dict[str, Any]:
    try:
        oid = parse_object_id(item_id)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    doc = db[collection].find_one({"_id": oid})
    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return doc


def new_order_number() -> str:
    return f"ORD-{str(int(time.time() * 1000))[-8:]}-{random.randint(0, 999):03d}"


# ----------------------------
# Root & health
# ----------------------------
@app.get("/")
def read_root():
    return {"message": "Innexora Hotel Management Backend Running"}


@app.get("/test")
def test_database():
    settings = get_settings()
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_url": "Set" if settings.database_url else "Not Set",
        "database_name": settings.database_name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    if client is not None:
        response["database"] = "Available"
        try:
            response["collections"] = client[settings.database_name].list_collection_names()
            response["database"] = "Connected & Working"
            response["connection_status"] = "Connected"
        except Exception as e:
            logger.warning(f"Database check failed: {e}")
            response["database"] = f"Connected but Error: {str(e)[:80]}"
    return response


# ----------------------------
# Guests (front desk)
# ----------------------------
class GuestCheckIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = None
    phone: str = Field(..., min_length=1)
    room_number: str
    check_in_date: Optional[datetime] = None


class GuestCheckOut(BaseModel):
    checked_out_by: str = Field(..., min_length=1)


@app.post("/api/guests", status_code=201)
def check_in_guest(payload: GuestCheckIn, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    room = validate_room_number(payload.room_number, get_settings().room_number_pattern)
    if db["guest"].find_one({"room_number": room, "checked_out": False}):
        raise HTTPException(status_code=400, detail=f"Room {room} is already occupied")
    guest = Guest(
        name=payload.name.strip(),
        email=payload.email.strip().lower() if payload.email else None,
        phone=payload.phone.strip(),
        room_number=room,
        check_in_date=payload.check_in_date or utcnow(),
    )
    guest_id = create_document("guest", guest, database=db)
    logger.info(f"Guest {guest.name} checked in to room {room} by {user['email']}")
    return serialize_doc(db["guest"].find_one({"_id": ObjectId(guest_id)}))


@app.get("/api/guests")
def list_guests(include_checked_out: bool = False, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    filt: Dict[str, Any] = {} if include_checked_out else {"checked_out": False}
    docs = get_documents("guest", filt, database=db)
    docs.sort(key=lambda d: d.get("check_in_date"), reverse=True)
    return [serialize_doc(d) for d in docs]


@app.get("/api/guests/{guest_id}")
def get_guest(guest_id: str, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    return serialize_doc(find_by_id(db, "guest", guest_id, "Guest"))


@app.post("/api/guests/{guest_id}/checkout")
def check_out_guest(guest_id: str, payload: GuestCheckOut, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    guest = find_by_id(db, "guest", guest_id, "Guest")
    if guest.get("checked_out"):
        raise HTTPException(status_code=400, detail="Guest is not currently checked in")
    bill = db["bill"].find_one({"guest_id": guest_id, "is_guest_checked_out": False})
    if bill:
        view = ledger.bill_view(bill)
        if view["balance_amount"] > 0:
            raise HTTPException(
                status_code=400,
                detail=f"Guest has unpaid bill amount of {view['balance_amount']}. Please collect payment before checkout.",
            )
    db["guest"].update_one(
        {"_id": guest["_id"]},
        {"$set": {"checked_out": True, "check_out_date": utcnow(), "updated_at": utcnow()}},
    )
    closed_bill = ledger.mark_guest_checked_out(db, guest_id)
    logger.info(f"Guest {guest['name']} checked out of room {guest['room_number']} by {payload.checked_out_by}")
    return {"guest": serialize_doc(db["guest"].find_one({"_id": guest["_id"]})), "bill": closed_bill}


# ----------------------------
# Menu (staff maintain, guests browse)
# ----------------------------
class MenuItemUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    is_available: Optional[bool] = None


@app.get("/api/menu")
def list_menu(include_unavailable: bool = False, db: Database = Depends(get_tenant_db)):
    filt: Dict[str, Any] = {} if include_unavailable else {"is_available": True}
    return [serialize_doc(i) for i in get_documents("menuitem", filt, database=db)]


@app.post("/api/menu", status_code=201)
def create_menu_item(item: MenuItem, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    item_id = create_document("menuitem", item, database=db)
    return serialize_doc(db["menuitem"].find_one({"_id": ObjectId(item_id)}))


@app.patch("/api/menu/{item_id}")
def update_menu_item(item_id: str, patch: MenuItemUpdate, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    item = find_by_id(db, "menuitem", item_id, "Menu item")
    update_data = patch.model_dump(exclude_unset=True)
    if update_data:
        update_data["updated_at"] = utcnow()
        db["menuitem"].update_one({"_id": item["_id"]}, {"$set": update_data})
    return serialize_doc(db["menuitem"].find_one({"_id": item["_id"]}))


# ----------------------------
# Orders (Guest -> Kitchen -> Billing)
# ----------------------------
class OrderPlaceItem(BaseModel):
    menu_item_id: str
    quantity: int = Field(..., ge=1)
    special_instructions: Optional[str] = Field(None, max_length=200)


class PlaceOrderRequest(BaseModel):
    guest_id: str
    items: List[OrderPlaceItem]
    special_instructions: Optional[str] = Field(None, max_length=500)


@app.post("/api/orders", status_code=201)
def place_order(payload: PlaceOrderRequest, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    if not payload.items:
        raise HTTPException(status_code=400, detail="No items provided")
    guest = find_by_id(db, "guest", payload.guest_id, "Guest")
    if guest.get("checked_out"):
        raise HTTPException(status_code=400, detail="Guest has already checked out")

    # Build snapshot items, priced from the menu
    snapshot_items: List[OrderItem] = []
    for it in payload.items:
        try:
            menu_oid = parse_object_id(it.menu_item_id)
        except ValueError:
            menu_oid = None
        menu_doc = db["menuitem"].find_one({"_id": menu_oid, "is_available": True}) if menu_oid else None
        if not menu_doc:
            raise HTTPException(status_code=404, detail=f"Menu item not found or unavailable: {it.menu_item_id}")
        price = round(float(menu_doc.get("price", 0)), 2)
        snapshot_items.append(OrderItem(
            menu_item_id=str(menu_doc["_id"]),
            name=menu_doc["name"],
            quantity=it.quantity,
            unit_price=price,
            total=round(price * it.quantity, 2),
            special_instructions=it.special_instructions,
        ))
    total = round(sum(i.total for i in snapshot_items), 2)
    if total <= 0:
        raise HTTPException(status_code=400, detail="Order total must be greater than zero")

    order = Order(
        order_number=new_order_number(),
        guest_id=payload.guest_id,
        guest_name=guest["name"],
        room_number=guest["room_number"],
        items=snapshot_items,
        total_amount=total,
        status="pending",
        special_instructions=payload.special_instructions,
    )
    order_id = create_document("order", order, database=db)
    doc = db["order"].find_one({"_id": ObjectId(order_id)})
    try:
        bill = ledger.add_order_to_bill(db, payload.guest_id, doc)
    except Exception:
        db["order"].delete_one({"_id": doc["_id"]})
        raise
    logger.info(f"Order {order.order_number} placed for room {guest['room_number']} ({total})")
    return {"order": serialize_doc(doc), "bill": bill}


@app.get("/api/orders")
def list_orders(
    status: Optional[OrderStatus] = None,
    guest_id: Optional[str] = None,
    db: Database = Depends(get_tenant_db),
    user: Dict = Depends(get_current_user),
):
    filt: Dict[str, Any] = {}
    if status:
        filt["status"] = status
    if guest_id:
        filt["guest_id"] = guest_id
    docs = get_documents("order", filt, database=db)
    # Sort newest first
    docs.sort(key=lambda d: d.get("created_at"), reverse=True)
    return [serialize_doc(d) for d in docs]


class UpdateOrderStatus(BaseModel):
    status: OrderStatus


@app.patch("/api/orders/{order_id}/status")
def update_order_status(order_id: str, payload: UpdateOrderStatus, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    order = find_by_id(db, "order", order_id, "Order")
    if order.get("status") == "delivered":
        raise HTTPException(status_code=400, detail="Delivered orders cannot be changed")
    update: Dict[str, Any] = {"status": payload.status, "updated_at": utcnow()}
    if payload.status == "delivered":
        update["delivered_at"] = utcnow()
        update["delivered_by"] = user.get("name")
    db["order"].update_one({"_id": order["_id"]}, {"$set": update})
    return serialize_doc(db["order"].find_one({"_id": order["_id"]}))


# ----------------------------
# Bills
# ----------------------------
class PaymentRequest(BaseModel):
    amount: float
    method: PaymentMethod
    paid_by: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=200)


@app.get("/api/bills")
def list_bills(
    status: Optional[str] = None,
    include_checked_out: bool = False,
    db: Database = Depends(get_tenant_db),
    user: Dict = Depends(get_current_user),
):
    return ledger.list_bills(db, status=status, include_checked_out=include_checked_out)


@app.get("/api/bills/stats")
def bill_stats(db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    return ledger.billing_stats(db)


@app.get("/api/bills/guest/{guest_id}")
def bill_for_guest(guest_id: str, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    return ledger.get_bill(db, guest_id)


@app.post("/api/bills/guest/{guest_id}/payments")
def pay_bill(guest_id: str, payload: PaymentRequest, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    data = payload.model_dump()
    data["paid_by"] = payload.paid_by or user.get("name") or user.get("email")
    return ledger.record_payment(db, guest_id, data)


# ----------------------------
# Tickets (guest requests -> staff dashboard)
# ----------------------------
class CreateTicketRequest(BaseModel):
    room_number: str
    guest_name: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    guest_contact: Optional[str] = None
    priority: TicketPriority = "medium"
    subject: Optional[str] = None


class UpdateTicketStatus(BaseModel):
    status: TicketStatus


@app.post("/api/tickets", status_code=201)
async def create_ticket(payload: CreateTicketRequest, db: Database = Depends(get_tenant_db)):
    try:
        room = validate_room_number(payload.room_number, get_settings().room_number_pattern)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    guest_name = payload.guest_name.strip()
    ticket = Ticket(
        room_number=room,
        guest_info=GuestInfo(name=guest_name, contact=payload.guest_contact),
        priority=payload.priority,
        subject=payload.subject or "Service Request",
        messages=[TicketMessage(content=payload.message.strip(), sender="guest", sender_name=guest_name)],
    )
    ticket_id = create_document("ticket", ticket, database=db)
    doc = db["ticket"].find_one({"_id": ObjectId(ticket_id)})
    await notify_new_ticket(doc, f"New ticket raised by {guest_name} in Room {room}")
    return serialize_doc(doc)


@app.get("/api/tickets")
def list_tickets(status: Optional[TicketStatus] = None, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    filt = {"status": status} if status else {}
    return [serialize_doc(d) for d in db["ticket"].find(filt).sort("created_at", DESCENDING)]


@app.patch("/api/tickets/{ticket_id}/status")
async def update_ticket_status(ticket_id: str, payload: UpdateTicketStatus, db: Database = Depends(get_tenant_db), user: Dict = Depends(get_current_user)):
    ticket = find_by_id(db, "ticket", ticket_id, "Ticket")
    db["ticket"].update_one({"_id": ticket["_id"]}, {"$set": {"status": payload.status, "updated_at": utcnow()}})
    doc = db["ticket"].find_one({"_id": ticket["_id"]})
    await notify_ticket_updated(doc)
    return serialize_doc(doc)


asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 5050))
    uvicorn.run(asgi_app, host="0.0.0.0", port=port)
