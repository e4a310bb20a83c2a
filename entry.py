"""Guest entry: a guest types their room number and lands in the room chat."""

import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from config import Settings, get_settings
from database import serialize_doc
from errors import ValidationError
from tenancy import Tenant, require_tenant


def validate_room_number(raw: Optional[str], pattern: str = r"^\d{3,4}$") -> str:
    room = str(raw or "").strip()
    if not room:
        raise ValidationError("Please enter your room number")
    if not re.match(pattern, room):
        raise ValidationError("Please enter a valid room number (3-4 digits)")
    return room


def room_entry_path(raw: Optional[str], pattern: str = r"^\d{3,4}$") -> str:
    return f"/hotel/{validate_room_number(raw, pattern)}"


router = APIRouter(tags=["guest entry"])


@router.post("/hotel")
async def enter_room(request: Request, settings: Settings = Depends(get_settings)):
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Please enter your room number")
        if not isinstance(data, dict):
            raise HTTPException(status_code=400, detail="Please enter your room number")
    else:
        data = await request.form()
    try:
        path = room_entry_path(data.get("roomNumber"), settings.room_number_pattern)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return RedirectResponse(path, status_code=303)


@router.get("/hotel/{room_number}")
def room_chat_context(room_number: str, tenant: Tenant = Depends(require_tenant), settings: Settings = Depends(get_settings)):
    try:
        room = validate_room_number(room_number, settings.room_number_pattern)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    guest = tenant.db["guest"].find_one({"room_number": room, "checked_out": False})
    return {
        "hotel": tenant.hotel["name"],
        "room_number": room,
        "guest": serialize_doc(guest) if guest else None,
    }
