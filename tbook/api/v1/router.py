"""Routers exposed by the application."""

from fastapi import APIRouter

from tbook.api.v1 import bookings, magic_links

api_router = APIRouter()

# Bookings
api_router.include_router(bookings.router, prefix="/booking", tags=["Bookings"])

# Magic links are served from the root, outside the API prefix
magic_link_router = APIRouter()
magic_link_router.include_router(magic_links.router, prefix="/appt", tags=["Magic Links"])
