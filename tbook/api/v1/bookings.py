"""Booking endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, status

from tbook.api.deps import get_booking_store, get_magic_link_resolver
from tbook.core.middleware import booking_limiter
from tbook.schemas.booking import (
    BookingCreate,
    BookingCreateResponse,
    BookingResponse,
    BookingStatusChange,
    PaymentUpdate,
)
from tbook.schemas.common import ApiResponse
from tbook.services.booking_store import BookingStore
from tbook.services.magic_link_service import MagicLinkResolver

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/create",
    response_model=ApiResponse[BookingCreateResponse],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_limiter)],
)
async def create_booking(
    booking_data: BookingCreate,
    store: Annotated[BookingStore, Depends(get_booking_store)],
    resolver: Annotated[MagicLinkResolver, Depends(get_magic_link_resolver)],
) -> ApiResponse[BookingCreateResponse]:
    """Create a booking and issue its magic link."""
    booking = await store.create(booking_data)

    return ApiResponse(
        data=BookingCreateResponse(
            booking_id=booking.booking_id,
            uuid=booking.id,
            magic_link=resolver.magic_link_url(booking.magic_link_id),
            status=booking.status,
            message="Booking created successfully",
        ),
        message="Booking created successfully",
    )


@router.get(
    "/{identifier}",
    response_model=ApiResponse[BookingResponse],
    response_model_exclude_none=True,
)
async def get_booking(
    identifier: str,
    store: Annotated[BookingStore, Depends(get_booking_store)],
) -> ApiResponse[BookingResponse]:
    """Get a booking by UUID or booking id."""
    booking = await store.get_by_id(identifier)
    return ApiResponse(data=BookingResponse.model_validate(booking))


@router.patch(
    "/{identifier}",
    response_model=ApiResponse[BookingResponse],
    response_model_exclude_none=True,
)
async def update_booking(
    identifier: str,
    changes: Annotated[dict[str, Any], Body()],
    store: Annotated[BookingStore, Depends(get_booking_store)],
) -> ApiResponse[BookingResponse]:
    """Overwrite contact or appointment fields.

    The raw body goes to the store so that status fields are rejected
    rather than silently dropped.
    """
    booking = await store.update(identifier, changes)
    return ApiResponse(data=BookingResponse.model_validate(booking), message="Booking updated")


@router.post(
    "/confirm/{identifier}",
    response_model=ApiResponse[BookingResponse],
    response_model_exclude_none=True,
)
async def confirm_booking(
    identifier: str,
    store: Annotated[BookingStore, Depends(get_booking_store)],
    change: BookingStatusChange | None = None,
) -> ApiResponse[BookingResponse]:
    """Confirm a pending booking. Confirming again changes nothing."""
    booking = await store.confirm(identifier)
    if change and change.reason:
        logger.info(f"Booking {booking.booking_id} confirm reason: {change.reason}")
    return ApiResponse(data=BookingResponse.model_validate(booking), message="Booking confirmed")


@router.post(
    "/complete/{identifier}",
    response_model=ApiResponse[BookingResponse],
    response_model_exclude_none=True,
)
async def complete_booking(
    identifier: str,
    store: Annotated[BookingStore, Depends(get_booking_store)],
    change: BookingStatusChange | None = None,
) -> ApiResponse[BookingResponse]:
    """Mark a confirmed booking as completed."""
    booking = await store.complete(identifier)
    if change and change.reason:
        logger.info(f"Booking {booking.booking_id} complete reason: {change.reason}")
    return ApiResponse(data=BookingResponse.model_validate(booking), message="Booking completed")


@router.post(
    "/cancel/{identifier}",
    response_model=ApiResponse[BookingResponse],
    response_model_exclude_none=True,
)
async def cancel_booking(
    identifier: str,
    store: Annotated[BookingStore, Depends(get_booking_store)],
    change: BookingStatusChange | None = None,
) -> ApiResponse[BookingResponse]:
    """Cancel a booking that has not finished yet."""
    booking = await store.cancel(identifier)
    if change and change.reason:
        logger.info(f"Booking {booking.booking_id} cancel reason: {change.reason}")
    return ApiResponse(data=BookingResponse.model_validate(booking), message="Booking cancelled")


@router.put(
    "/payment/{identifier}",
    response_model=ApiResponse[BookingResponse],
    response_model_exclude_none=True,
)
async def update_payment(
    identifier: str,
    payment: PaymentUpdate,
    store: Annotated[BookingStore, Depends(get_booking_store)],
) -> ApiResponse[BookingResponse]:
    """Record a payment outcome reported by the payment provider."""
    booking = await store.update_payment(identifier, payment)
    return ApiResponse(
        data=BookingResponse.model_validate(booking),
        message=f"Payment status updated to {booking.payment_status}",
    )
