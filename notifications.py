"""
Real-time ticket notifications for staff dashboards over socket.io.

Server side: staff sockets join the `managers` room and receive `newTicket`
whenever a guest raises a ticket. Client side: `NotificationSubscription` is
the dashboard's handle on that connection; it turns raw socket.io callbacks
into typed events for a listener such as `DashboardNotifier`.
"""

import logging
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import socketio

from config import get_settings
from database import serialize_doc, utcnow

logger = logging.getLogger(__name__)

MANAGERS_ROOM = "managers"
TICKETS_PAGE = "/dashboard/tickets"

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=get_settings().cors_origins)


@sio.event
async def connect(sid, environ, auth=None):
    logger.info(f"New WebSocket connection {sid}")


@sio.on("joinManagersRoom")
async def join_managers_room(sid, manager_id=None):
    await sio.enter_room(sid, MANAGERS_ROOM)
    logger.info(f"Manager {manager_id} joined managers room for real-time notifications")


@sio.on("joinTicketRoom")
async def join_ticket_room(sid, ticket_id):
    await sio.enter_room(sid, f"ticket_{ticket_id}")
    logger.info(f"Socket {sid} joined ticket room ticket_{ticket_id}")


@sio.event
async def disconnect(sid, *args):
    logger.info(f"Socket {sid} disconnected")


def ticket_payload(ticket: Dict[str, Any]) -> Dict[str, Any]:
    """Shape a ticket document the way dashboard clients read it (camelCase keys)."""
    doc = serialize_doc(ticket)
    guest_info = doc.get("guest_info") or {}
    return {
        "id": doc.get("id"),
        "roomNumber": doc.get("room_number"),
        "guestInfo": {"name": guest_info.get("name"), "contact": guest_info.get("contact")},
        "status": doc.get("status"),
        "priority": doc.get("priority"),
        "subject": doc.get("subject"),
    }


async def notify_new_ticket(ticket: Dict[str, Any], message: str) -> None:
    payload = {"ticket": ticket_payload(ticket), "message": message, "timestamp": utcnow().isoformat()}
    await sio.emit("newTicket", payload, room=MANAGERS_ROOM)
    logger.info(f"New ticket notification sent to managers for Room {ticket.get('room_number')}")


async def notify_ticket_updated(ticket: Dict[str, Any]) -> None:
    payload = ticket_payload(ticket)
    await sio.emit("ticketUpdated", payload, room=f"ticket_{payload['id']}")


# ----------------------------
# Dashboard client
# ----------------------------
@dataclass(frozen=True)
class Connected:
    pass


@dataclass(frozen=True)
class Disconnected:
    reason: Optional[str] = None


@dataclass(frozen=True)
class ConnectionFailed:
    error: Any = None


@dataclass(frozen=True)
class TicketCreated:
    guest_name: str
    room_number: str
    message: str
    ticket: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "TicketCreated":
        ticket = data.get("ticket") or {}
        return cls(
            guest_name=(ticket.get("guestInfo") or {}).get("name") or "Guest",
            room_number=str(ticket.get("roomNumber") or ""),
            message=data.get("message") or "",
            ticket=ticket,
        )


NotificationEvent = Union[Connected, Disconnected, ConnectionFailed, TicketCreated]


class NotificationSubscription:
    """Cancellable handle on the dashboard's socket.io connection."""

    def __init__(
        self,
        url: str,
        listener: Callable[[NotificationEvent], None],
        manager_id: str = "manager",
        client_factory: Callable[[], Any] = socketio.Client,
    ):
        self.url = url
        self.listener = listener
        self.manager_id = manager_id
        self._client_factory = client_factory
        self._client = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def open(self) -> "NotificationSubscription":
        with self._lock:
            if self._client is not None:
                return self
            client = self._client_factory()
            client.on("connect", self._on_connect)
            client.on("connect_error", self._on_connect_error)
            client.on("newTicket", self._on_new_ticket)
            client.on("disconnect", self._on_disconnect)
            self._client = client
        try:
            client.connect(self.url, transports=["websocket", "polling"], wait_timeout=20)
        except Exception as exc:
            logger.error(f"WebSocket connect to {self.url} failed: {exc}")
            with self._lock:
                if self._client is client:
                    self._client = None
            raise
        return self

    def close(self) -> None:
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.disconnect()

    def __enter__(self) -> "NotificationSubscription":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _on_connect(self):
        logger.info("Connected to WebSocket server")
        if self._client is not None:
            self._client.emit("joinManagersRoom", self.manager_id)
        self.listener(Connected())

    def _on_connect_error(self, data=None):
        logger.error(f"WebSocket connection error: {data}")
        self.listener(ConnectionFailed(error=data))

    def _on_new_ticket(self, data):
        logger.info(f"New ticket received: {data}")
        self.listener(TicketCreated.from_payload(data or {}))

    def _on_disconnect(self, reason=None):
        logger.info("Disconnected from WebSocket server")
        self.listener(Disconnected(reason=str(reason) if reason is not None else None))


def terminal_bell() -> None:
    sys.stdout.write("\a")
    sys.stdout.flush()


class AudioCue:
    """Notification sound that stays muted until the first user gesture unlocks it."""

    def __init__(self, player: Callable[[], None] = terminal_bell):
        self._player = player
        self.unlocked = False

    def unlock(self) -> None:
        if not self.unlocked:
            self.unlocked = True
            logger.info("Audio unlocked")

    def play(self) -> bool:
        if not self.unlocked:
            logger.debug("Audio still locked, skipping notification sound")
            return False
        try:
            self._player()
        except Exception as exc:
            logger.warning(f"Audio play failed: {exc}")
            return False
        return True


@dataclass(frozen=True)
class Toast:
    title: str
    description: str
    action_label: str = "View"
    action_url: str = TICKETS_PAGE


class DashboardNotifier:
    """Listener that turns new tickets into a toast and a sound."""

    def __init__(self, audio: Optional[AudioCue] = None, on_toast: Optional[Callable[[Toast], None]] = None):
        self.audio = audio or AudioCue()
        self.on_toast = on_toast
        self.toasts: List[Toast] = []
        self.connected = False

    def user_gesture(self) -> None:
        self.audio.unlock()

    def __call__(self, event: NotificationEvent) -> None:
        if isinstance(event, Connected):
            self.connected = True
        elif isinstance(event, (Disconnected, ConnectionFailed)):
            self.connected = False
        elif isinstance(event, TicketCreated):
            toast = Toast(
                title=f"New Ticket from {event.guest_name}",
                description=f"Room {event.room_number} - {event.message}",
            )
            self.toasts.append(toast)
            if self.on_toast:
                self.on_toast(toast)
            self.audio.play()
