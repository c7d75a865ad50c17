# backend/clinic_booking/schemas/bookings.py
"""
Pydantic schemas for bookings API.
"""

from typing import Literal
from pydantic import BaseModel, Field


BookingStatus = Literal["pending", "confirmed", "cancelled", "completed", "no_show"]


class BookingCreate(BaseModel):
    """Public booking request. end_time is advisory: the service duration wins."""
    professional_id: int = Field(gt=0)
    service_id: int = Field(gt=0)
    client_id: int = Field(gt=0)
    consultation_id: int | None = Field(default=None, gt=0)
    date: str = Field(description="YYYY-MM-DD")
    start_time: str = Field(description="HH:MM")
    end_time: str = Field(description="HH:MM")
    notes: str | None = None


class ProfessionalRef(BaseModel):
    name: str | None = None


class ServiceRef(BaseModel):
    name: str | None = None


class ClientRef(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None


class BookingRead(BaseModel):
    id: int
    organization_id: int
    professional_id: int
    service_id: int
    client_id: int
    consultation_id: int | None = None
    date: str
    start_time: str
    end_time: str
    duration: int
    status: BookingStatus
    notes: str | None = None
    professional: ProfessionalRef
    service: ServiceRef
    client: ClientRef

    model_config = {"from_attributes": True}


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    organization_id: int = Field(gt=0)
