"""
Database Schemas for the Innexora hotel platform

Each Pydantic model represents a collection in MongoDB. The collection name
is the lowercase of the class name (e.g., Guest -> "guest"). Hotel lives in
the main database; everything else lives in the tenant database of the hotel.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

OrderStatus = Literal["pending", "confirmed", "preparing", "ready", "delivered", "cancelled"]
PaymentMethod = Literal["cash", "card", "upi", "bank_transfer", "other"]
TicketStatus = Literal["raised", "in_progress", "completed"]
TicketPriority = Literal["low", "medium", "high"]
UserRole = Literal["manager", "staff", "admin"]


class Hotel(BaseModel):
    """
    Registered hotel (tenant)
    Collection name: "hotel" (main database)
    """
    name: str = Field(..., max_length=100, description="Hotel name")
    subdomain: str = Field(..., description="Lowercase subdomain the hotel is served on")
    status: Literal["Active", "Inactive"] = Field("Active")
    email: Optional[str] = None
    phone: Optional[str] = None
    timezone: str = Field("UTC")
    currency: str = Field("INR")
    check_in_time: str = Field("14:00")
    check_out_time: str = Field("12:00")


class User(BaseModel):
    """
    Staff account
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Email address")
    password_hash: str = Field(..., description="Salted password hash")
    role: UserRole = Field("manager")
    hotel_name: Optional[str] = None


class Guest(BaseModel):
    """
    Checked-in guest
    Collection name: "guest"
    """
    name: str = Field(..., max_length=100, description="Guest name")
    email: Optional[str] = Field(None, description="Email address")
    phone: str = Field(..., description="Phone number")
    room_number: str = Field(..., description="Assigned room number")
    check_in_date: datetime = Field(..., description="Check-in timestamp")
    checked_out: bool = Field(False)
    check_out_date: Optional[datetime] = None


class MenuItem(BaseModel):
    """
    Food and drink the kitchen serves
    Collection name: "menuitem"
    """
    name: str = Field(..., description="Food/Drink name")
    description: Optional[str] = Field(None, description="Short description")
    price: float = Field(..., ge=0, description="Current price")
    category: Optional[str] = Field(None, description="Category like Breakfast/Main/Dessert/Drink")
    is_available: bool = Field(True, description="Whether item can be ordered")


class OrderItem(BaseModel):
    """Item inside an order (price snapshot captured at order time)."""
    menu_item_id: str = Field(..., description="Referenced menu item id")
    name: str = Field(..., description="Item name snapshot")
    quantity: int = Field(..., ge=1, description="Quantity")
    unit_price: float = Field(..., ge=0, description="Unit price snapshot")
    total: float = Field(..., ge=0, description="Line total (unit_price * quantity)")
    special_instructions: Optional[str] = Field(None, max_length=200)


class Order(BaseModel):
    """
    Guest order with list of items and delivery status.
    Collection name: "order"
    """
    order_number: str
    guest_id: str = Field(..., description="Owning guest id")
    guest_name: str
    room_number: str
    items: List[OrderItem] = Field(..., description="Ordered items")
    total_amount: float = Field(..., ge=0)
    status: OrderStatus = Field("pending")
    special_instructions: Optional[str] = Field(None, max_length=500)


class Payment(BaseModel):
    """Payment recorded against a bill."""
    amount: float = Field(..., description="Amount paid")
    method: PaymentMethod
    paid_by: str = Field(..., description="Who paid / who received the payment")
    reference: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=200)


class BillItem(BaseModel):
    """Line copied from an order when it is folded into the bill."""
    description: str
    amount: float
    quantity: int = 1
    unit_price: float = 0
    order_id: str


class Bill(BaseModel):
    """
    One bill per guest stay. Status and balance are derived, never stored.
    Collection name: "bill"
    """
    bill_number: str
    guest_id: str
    guest_name: str
    room_number: str
    orders: List[str] = Field(default_factory=list, description="Folded order ids")
    items: List[BillItem] = Field(default_factory=list)
    payments: List[Payment] = Field(default_factory=list)
    total_amount: float = Field(0, ge=0)
    paid_amount: float = Field(0, ge=0)
    is_guest_checked_out: bool = False


class GuestInfo(BaseModel):
    name: str
    contact: Optional[str] = None


class TicketMessage(BaseModel):
    content: str
    sender: Literal["guest", "manager", "ai_assistant", "system"]
    sender_name: str


class Ticket(BaseModel):
    """
    Guest service request routed to staff.
    Collection name: "ticket"
    """
    room_number: str
    guest_info: GuestInfo
    status: TicketStatus = Field("raised")
    priority: TicketPriority = Field("medium")
    subject: str = Field("Service Request")
    messages: List[TicketMessage] = Field(default_factory=list)
