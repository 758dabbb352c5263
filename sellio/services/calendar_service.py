"""iCalendar export for confirmed bookings"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from ..shared.clock import slot_start_at, utcnow

ICS_DATETIME = "%Y%m%dT%H%M%SZ"


def _escape(value: str) -> str:
    """Escape text per RFC 5545 section 3.3.11"""
    return (
        value.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\n", "\\n")
    )


def _utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(ICS_DATETIME)


def build_booking_event(
    order_id: str,
    title: str,
    booking_date,
    booking_time,
    duration_minutes: int,
    description: Optional[str] = None,
    location: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Single VEVENT calendar; times are converted from creator time to UTC"""
    start = slot_start_at(booking_date, booking_time)
    end = start + timedelta(minutes=duration_minutes)
    stamp = now or utcnow()

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Sellio//Bookings//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{order_id}@sellio",
        f"DTSTAMP:{_utc(stamp)}",
        f"DTSTART:{_utc(start)}",
        f"DTEND:{_utc(end)}",
        f"SUMMARY:{_escape(title)}",
    ]
    if description:
        lines.append(f"DESCRIPTION:{_escape(description)}")
    if location:
        lines.append(f"LOCATION:{_escape(location)}")
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines) + "\r\n"
