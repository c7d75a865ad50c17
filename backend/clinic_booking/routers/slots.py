# backend/clinic_booking/routers/slots.py
"""
Slots API endpoints.

GET  /public/{organization_id}/available-slots - Bookable slots of a day
POST /slots/invalidate                          - Drop cached base candidates
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from ..exceptions import ValidationError
from ..schemas.slots import (
    AnyProfessionalSlotRead,
    AvailableSlotsResponse,
    SlotRead,
    SlotsInvalidateResponse,
)
from ..services.slots import AvailabilityService, invalidate_professional_cache
from ..services.slots.config import parse_date

ANY_PROFESSIONAL = "any"

router = APIRouter(tags=["slots"])


def get_availability_service(request: Request) -> AvailabilityService:
    return request.app.state.availability_service


@router.get("/public/{organization_id}/available-slots", response_model=AvailableSlotsResponse)
def get_available_slots(
    organization_id: int,
    response: Response,
    professional_id: str | None = None,
    service_id: str | None = None,
    target_date: str | None = Query(None, alias="date"),
    service: AvailabilityService = Depends(get_availability_service),
):
    """
    Bookable slots of a professional (or of any professional) for a service on a day.

    An empty day caused by vacation or a missing schedule is reported in the
    X-Availability-Reason header.
    """
    if not professional_id or not service_id or not target_date:
        raise ValidationError("Missing required parameters: professional_id, service_id, date")

    day = parse_date(target_date)
    service_pk = _parse_id("service_id", service_id)

    if professional_id == ANY_PROFESSIONAL:
        merged = service.get_available_slots_any(organization_id, service_pk, day)
        if merged.reason:
            response.headers["X-Availability-Reason"] = merged.reason
        return AvailableSlotsResponse(slots=[
            AnyProfessionalSlotRead(
                start_time=ps.slot.start_time,
                end_time=ps.slot.end_time,
                professional_id=ps.professional_id,
                professional_name=ps.professional_name,
            )
            for ps in merged.slots
        ])

    result = service.get_available_slots(
        _parse_id("professional_id", professional_id),
        service_pk,
        day,
        organization_id=organization_id,
    )
    if result.reason:
        response.headers["X-Availability-Reason"] = result.reason

    return AvailableSlotsResponse(slots=[
        SlotRead(start_time=slot.start_time, end_time=slot.end_time)
        for slot in result.slots
    ])


@router.post("/slots/invalidate", response_model=SlotsInvalidateResponse)
def invalidate_slots(
    request: Request,
    professional_id: int,
    dates: list[date] | None = Query(None),
):
    """Drop cached base candidates after a schedule change (all dates when none given)."""
    redis = request.app.state.redis
    if redis is None:
        raise HTTPException(status_code=503, detail="Slots cache is not configured")

    deleted = invalidate_professional_cache(redis, professional_id, dates)
    return SlotsInvalidateResponse(professional_id=professional_id, dates=dates, deleted=deleted)


def _parse_id(name: str, value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value!r}")
    if parsed <= 0:
        raise ValidationError(f"Invalid {name}: {value!r}")
    return parsed
