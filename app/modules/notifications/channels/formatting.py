"""Presentation helpers shared by the channel senders."""

from datetime import datetime
from typing import List, Optional, Tuple

from modules.notifications.models import EventType, NotificationEvent

BRAND_NAME = "Pulse"

STATUS_COLORS = {
    "offline": "#dc2626",
    "online": "#16a34a",
    "degraded": "#d97706",
}
DEFAULT_COLOR = "#2563eb"

_TITLES = {
    EventType.DEVICE_OFFLINE: "Device Offline: {name}",
    EventType.DEVICE_ONLINE: "Device Online: {name}",
    EventType.DEVICE_DEGRADED: "Device Degraded: {name}",
    EventType.AGENT_OFFLINE: "Agent Offline: {name}",
    EventType.AGENT_ONLINE: "Agent Online: {name}",
    EventType.SCAN_COMPLETE: "Network Scan Complete",
}

_HEADLINES = {
    EventType.DEVICE_OFFLINE: "Device Offline",
    EventType.DEVICE_ONLINE: "Device Back Online",
    EventType.DEVICE_DEGRADED: "Device Performance Degraded",
    EventType.AGENT_OFFLINE: "Agent Offline",
    EventType.AGENT_ONLINE: "Agent Back Online",
    EventType.SCAN_COMPLETE: "Network Scan Complete",
}

_SEVERITY = {
    "offline": "Alert",
    "online": "Resolved",
    "degraded": "Warning",
}


def event_title(event: NotificationEvent) -> str:
    """Short title, e.g. "Device Offline: core-switch"."""
    template = _TITLES.get(event.type)
    if template is None:
        return f"{BRAND_NAME} Notification"
    return template.format(name=event.resource_name)


def event_headline(event: NotificationEvent) -> str:
    return _HEADLINES.get(event.type, "Notification")


def status_color(event: NotificationEvent) -> str:
    """Hex color for the event status (red, green, amber, blue otherwise)."""
    return STATUS_COLORS.get(event.type.status, DEFAULT_COLOR)


def email_subject(event: NotificationEvent) -> str:
    if event.type == EventType.SCAN_COMPLETE:
        return "[Info] Network Scan Complete"
    severity = _SEVERITY.get(event.type.status)
    if severity is None or event.type not in _TITLES:
        return f"[{BRAND_NAME}] Notification"
    return f"[{severity}] {event_title(event)}"


def format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def ip_address(event: NotificationEvent) -> Optional[str]:
    value = event.data.get("ip_address")
    return str(value) if value else None


def event_facts(event: NotificationEvent) -> List[Tuple[str, str]]:
    """Ordered (label, value) pairs rendered by every chat/email format."""
    facts = [
        ("Resource", event.resource_name),
        ("Type", event.resource_type.value),
        ("Status", event.type.status.capitalize()),
        ("Time", format_timestamp(event.timestamp)),
    ]
    ip = ip_address(event)
    if ip:
        facts.append(("IP Address", ip))
    return facts
