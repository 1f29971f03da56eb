"""Typed views over the loosely structured payloads the workflow receives.

Inquiry details arrive as a free-form JSON blob and roster rows arrive as
client-built dictionaries; both are validated here, at the boundary, so the
services only ever see these dataclasses.
"""

import re
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from eventcrew.errors import ValidationFailure

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
BOOKING_TYPES = {"backline", "fullsystem", "soundtech"}


def _clean(value):
    text = str(value).strip() if value is not None else ""
    return text or None


def parse_decimal(value, field_name, allow_zero=True):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValidationFailure(f"{field_name} must be a number.") from exc
    if not amount.is_finite() or amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationFailure(f"{field_name} must be {'zero or ' if allow_zero else ''}positive.")
    return amount


def parse_optional_decimal(value, field_name):
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_decimal(value, field_name)


@dataclass
class EquipmentLine:
    name: str
    quantity: int = 1


@dataclass
class EventDetails:
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    event_name: Optional[str] = None
    event_date: Optional[date] = None
    event_time: Optional[str] = None
    location: Optional[str] = None
    booking_type: str = "soundtech"
    attendance: Optional[str] = None
    setup_time: Optional[str] = None
    notes: Optional[str] = None
    equipment: list = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload):
        if not isinstance(payload, dict):
            raise ValidationFailure("Event details must be an object.")

        client_name = _clean(payload.get("client_name"))
        client_email = (_clean(payload.get("client_email")) or "").lower()
        if not client_name or not EMAIL_RE.match(client_email):
            raise ValidationFailure("Client name and a valid client email are required.")

        event_date = None
        raw_date = _clean(payload.get("event_date"))
        if raw_date:
            try:
                event_date = date.fromisoformat(raw_date)
            except ValueError as exc:
                raise ValidationFailure("event_date must be YYYY-MM-DD.") from exc

        booking_type = (_clean(payload.get("booking_type")) or "soundtech").lower()
        if booking_type not in BOOKING_TYPES:
            raise ValidationFailure(f"Unknown booking type: {booking_type}.")

        equipment = []
        for item in payload.get("equipment") or []:
            if not isinstance(item, dict) or not _clean(item.get("name")):
                raise ValidationFailure("Equipment lines need a name.")
            try:
                quantity = int(item.get("quantity", 1))
            except (TypeError, ValueError) as exc:
                raise ValidationFailure("Equipment quantity must be a whole number.") from exc
            if quantity <= 0:
                raise ValidationFailure("Equipment quantity must be positive.")
            equipment.append(EquipmentLine(name=_clean(item["name"]), quantity=quantity))

        return cls(
            client_name=client_name,
            client_email=client_email,
            client_phone=_clean(payload.get("client_phone")),
            event_name=_clean(payload.get("event_name")),
            event_date=event_date,
            event_time=_clean(payload.get("event_time")),
            location=_clean(payload.get("location")),
            booking_type=booking_type,
            attendance=_clean(payload.get("attendance")),
            setup_time=_clean(payload.get("setup_time")),
            notes=_clean(payload.get("notes")),
            equipment=equipment,
        )

    @classmethod
    def from_booking(cls, booking):
        """Rebuild details from a stored booking without re-validating."""
        extra = booking.details_json or {}
        return cls(
            client_name=booking.client_name,
            client_email=booking.client_email,
            client_phone=booking.client_phone,
            event_name=booking.event_name,
            event_date=booking.event_date,
            event_time=booking.event_time,
            location=booking.location,
            booking_type=extra.get("booking_type", "soundtech"),
            attendance=extra.get("attendance"),
            setup_time=extra.get("setup_time"),
            notes=extra.get("notes"),
            equipment=[EquipmentLine(**line) for line in extra.get("equipment", [])],
        )

    def extra_json(self):
        """The parts of the details that have no dedicated booking column."""
        return {
            "booking_type": self.booking_type,
            "attendance": self.attendance,
            "setup_time": self.setup_time,
            "notes": self.notes,
            "equipment": [asdict(line) for line in self.equipment],
        }

    def summary_lines(self):
        lines = []
        if self.event_date:
            lines.append(f"Date: {self.event_date.strftime('%A %d %B %Y')}")
        if self.event_time:
            lines.append(f"Time: {self.event_time}")
        lines.append(f"Location: {self.location or 'TBC'}")
        if self.attendance:
            lines.append(f"Attendance: {self.attendance}")
        if self.setup_time:
            lines.append(f"Setup/Packout: {self.setup_time}")
        if self.equipment:
            lines.append("Equipment:")
            lines.extend(f"  - {line.quantity}x {line.name}" for line in self.equipment)
        if self.notes:
            lines.append(f"Notes: {self.notes}")
        return lines


@dataclass
class RosterEntry:
    contractor_id: int
    hourly_rate: Decimal
    estimated_hours: Decimal
    pay_amount: Decimal
    tasks_description: Optional[str] = None

    @classmethod
    def from_payload(cls, item):
        if not isinstance(item, dict):
            raise ValidationFailure("Each roster entry must be an object.")
        try:
            contractor_id = int(item.get("contractor_id"))
        except (TypeError, ValueError) as exc:
            raise ValidationFailure("contractor_id must be an integer.") from exc

        hourly_rate = parse_decimal(item.get("hourly_rate", 0), "hourly_rate")
        estimated_hours = parse_decimal(item.get("estimated_hours", 0), "estimated_hours")
        pay_amount = parse_optional_decimal(item.get("pay_amount"), "pay_amount")
        if pay_amount is None:
            pay_amount = (hourly_rate * estimated_hours).quantize(Decimal("0.01"))
        if pay_amount <= 0:
            raise ValidationFailure("Each contractor needs a positive pay amount.")

        return cls(
            contractor_id=contractor_id,
            hourly_rate=hourly_rate,
            estimated_hours=estimated_hours,
            pay_amount=pay_amount,
            tasks_description=_clean(item.get("tasks_description")),
        )


def parse_roster(payload):
    if not isinstance(payload, list) or not payload:
        raise ValidationFailure("At least one contractor must be selected.")
    entries = [RosterEntry.from_payload(item) for item in payload]
    ids = [entry.contractor_id for entry in entries]
    if len(ids) != len(set(ids)):
        raise ValidationFailure("A contractor can only appear once in a roster.")
    return entries
