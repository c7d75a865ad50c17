# backend/clinic_booking/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date
from pydantic import BaseModel, Field


class SlotRead(BaseModel):
    """A bookable slot."""
    start_time: str  # "HH:MM"
    end_time: str    # "HH:MM"
    available: bool = True

    model_config = {"from_attributes": True}


class AnyProfessionalSlotRead(SlotRead):
    """A slot offered by one of the organization's professionals."""
    professional_id: int
    professional_name: str


class AvailableSlotsResponse(BaseModel):
    """Response with bookable slots for a day. Empty for vacation/no schedule."""
    slots: list[AnyProfessionalSlotRead | SlotRead]


class SlotsInvalidateResponse(BaseModel):
    """Result of dropping cached base candidates."""
    professional_id: int
    dates: list[date] | None = Field(default=None, description="None when every cached date was dropped")
    deleted: int
