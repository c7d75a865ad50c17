# backend/clinic_booking/routers/bookings.py

from fastapi import APIRouter, Depends, Request, status

from ..data_access import AdminDataAccess, get_data_access
from ..schemas.bookings import BookingCreate, BookingRead, BookingStatusUpdate
from ..services.booking import BookingTransaction, transition_status

router = APIRouter(tags=["bookings"])


def get_booking_transaction(request: Request) -> BookingTransaction:
    return request.app.state.booking_transaction


@router.post(
    "/public/{organization_id}/booking",
    response_model=BookingRead,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    organization_id: int,
    data: BookingCreate,
    transaction: BookingTransaction = Depends(get_booking_transaction),
):
    return transaction.book(organization_id=organization_id, **data.model_dump())


@router.patch("/bookings/{booking_id}/status", response_model=BookingRead)
def update_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    request: Request,
    data_access: AdminDataAccess = Depends(get_data_access),
):
    return transition_status(
        data_access,
        booking_id,
        data.organization_id,
        data.status,
        redis=request.app.state.redis,
    )
