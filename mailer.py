"""Contact form handler for the marketing site: validates a demo request and mails it to sales."""

import html
import logging
import re
import smtplib
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import Settings, get_settings
from errors import ValidationError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
REQUIRED_FIELDS = ("name", "hotelName", "email", "phone", "roomCount")


class ContactRequest(BaseModel):
    name: str
    hotelName: str
    email: str
    phone: str
    roomCount: str
    message: Optional[str] = None


def validate_contact(payload: Dict[str, Any]) -> ContactRequest:
    values = {}
    for key in REQUIRED_FIELDS:
        value = payload.get(key)
        text = str(value).strip() if value is not None else ""
        if not text or value is False or value == 0:
            raise ValidationError("All required fields must be filled")
        values[key] = text
    if not EMAIL_PATTERN.match(values["email"]):
        raise ValidationError("Invalid email format")
    message = payload.get("message")
    values["message"] = str(message).strip() if message else None
    return ContactRequest(**values)


def render_contact_email(contact: ContactRequest, sent_at: Optional[datetime] = None) -> str:
    e = {key: html.escape(value) for key, value in contact.model_dump().items() if value}
    sent_at = sent_at or datetime.now()
    rows = [
        ("Name", e["name"]),
        ("Hotel Name", e["hotelName"]),
        ("Email", f'<a href="mailto:{e["email"]}">{e["email"]}</a>'),
        ("Phone", f'<a href="tel:{e["phone"]}">{e["phone"]}</a>'),
        ("Room Count", e["roomCount"]),
    ]
    table = "\n".join(
        f'<tr><td style="padding: 8px 0; font-weight: bold; color: #555; width: 30%;">{label}:</td>'
        f'<td style="padding: 8px 0; color: #333;">{value}</td></tr>'
        for label, value in rows
    )
    extra = ""
    if "message" in e:
        extra = (
            '<div style="background-color: #f0f8ff; padding: 20px; border-radius: 6px; margin-bottom: 20px;">'
            '<h3 style="color: #333; font-size: 16px; margin-top: 0;">Additional Message:</h3>'
            f'<p style="color: #555; line-height: 1.5; margin: 0;">{e["message"]}</p></div>'
        )
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<h1 style="color: #000; font-size: 24px;">New Contact Form Submission - Innexora</h1>'
        '<div style="background-color: #f9f9f9; padding: 20px; border-radius: 6px; margin-bottom: 20px;">'
        '<h2 style="color: #333; font-size: 18px; margin-top: 0;">Contact Details</h2>'
        f'<table style="width: 100%; border-collapse: collapse;">{table}</table></div>'
        f"{extra}"
        '<p style="color: #888; font-size: 12px;">This email was sent from the Innexora contact form on '
        f'{sent_at.strftime("%Y-%m-%d %H:%M:%S")}</p></div>'
    )


def build_message(contact: ContactRequest, settings: Settings) -> EmailMessage:
    message = EmailMessage()
    message["From"] = formataddr(("Innexora Contact Form", settings.mail_user or ""))
    message["To"] = settings.contact_email or settings.mail_user or ""
    message["Subject"] = f"New Demo Request from {contact.name} - {contact.hotelName}"
    message["Reply-To"] = contact.email
    message.set_content(
        f"New demo request from {contact.name} ({contact.hotelName}), "
        f"{contact.email}, {contact.phone}, {contact.roomCount} rooms."
    )
    message.add_alternative(render_contact_email(contact), subtype="html")
    return message


class SmtpRelay:
    """Sends mail through an authenticated STARTTLS relay (Gmail by default)."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=self.settings.http_timeout) as smtp:
            smtp.starttls()
            if self.settings.mail_user and self.settings.mail_password:
                smtp.login(self.settings.mail_user, self.settings.mail_password)
            smtp.send_message(message)


def get_relay(settings: Settings = Depends(get_settings)) -> SmtpRelay:
    return SmtpRelay(settings)


router = APIRouter(prefix="/api", tags=["contact"])


@router.post("/contact")
async def contact(request: Request, relay: SmtpRelay = Depends(get_relay), settings: Settings = Depends(get_settings)):
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    try:
        form = validate_contact(payload)
    except ValidationError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    try:
        relay.send(build_message(form, settings))
    except Exception:
        logger.exception(f"Error sending contact email for {form.hotelName}")
        return JSONResponse(status_code=500, content={"error": "Failed to send email"})

    logger.info(f"Contact request from {form.name} ({form.hotelName}) forwarded")
    return {"message": "Email sent successfully"}
