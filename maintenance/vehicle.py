"""Vehicle class for vehicle identification and mileage state."""

from typing import Optional


class Vehicle:
    """A tracked vehicle with its odometer and reminder state.

    Timestamps are ISO 8601 strings as stored; parsing happens where they
    are used so a malformed value never breaks loading.
    """

    def __init__(
        self,
        id: str,
        make: str,
        model: str,
        year: Optional[int] = None,
        vin: Optional[str] = None,
        contact_email: Optional[str] = None,
        current_mileage: Optional[float] = None,
        last_mileage_confirmed_at: Optional[str] = None,
        last_mileage_reminder_at: Optional[str] = None,
        created_at: Optional[str] = None,
    ):
        self.id = id
        self.make = make
        self.model = model
        self.year = year
        self.vin = vin
        self.contact_email = contact_email
        self.current_mileage = current_mileage
        self.last_mileage_confirmed_at = last_mileage_confirmed_at
        self.last_mileage_reminder_at = last_mileage_reminder_at
        self.created_at = created_at

    @property
    def name(self) -> str:
        """Human-readable vehicle name, e.g. '2015 Subaru BRZ'."""
        parts = [str(self.year) if self.year else "", self.make or "", self.model or ""]
        return " ".join(p for p in parts if p).strip()

    @property
    def has_contact(self) -> bool:
        return bool(self.contact_email and self.contact_email.strip())

