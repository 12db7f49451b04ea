"""Magic link resolution: token lookup, redirect targets and previews."""

import logging
from dataclasses import dataclass
from urllib.parse import quote, urlencode

from tbook.config import settings
from tbook.core.exceptions import NotFoundError
from tbook.models.booking import Booking
from tbook.schemas.booking import BookingResponse
from tbook.schemas.magic_link import AnalyticsEventCreate, MagicLinkPreview
from tbook.services.analytics_service import ACCESS_EVENT, AnalyticsRecorder
from tbook.services.booking_store import BookingStore
from tbook.utils.identifiers import is_magic_link_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedirectTarget:
    """Where a resolved magic link sends its holder."""

    booking_id: str
    url: str
    status: str
    payment_status: str


class MagicLinkResolver:
    """Maps magic-link tokens to bookings."""

    def __init__(
        self,
        store: BookingStore,
        recorder: AnalyticsRecorder,
        frontend_base_url: str | None = None,
        magic_link_base_url: str | None = None,
    ) -> None:
        self._store = store
        self._recorder = recorder
        self._frontend_base_url = (frontend_base_url or settings.frontend_base_url).rstrip("/")
        self._magic_link_base_url = (magic_link_base_url or settings.magic_link_base_url).rstrip("/")

    def magic_link_url(self, token: str) -> str:
        """Public URL handed to the booking holder."""
        return f"{self._magic_link_base_url}/appt/{token}"

    def redirect_url(self, booking: Booking) -> str:
        """Frontend booking page for the current booking state."""
        query = urlencode({
            "status": booking.status,
            "payment_status": booking.payment_status,
            "source": "magic_link",
        })
        return f"{self._frontend_base_url}/booking/{quote(booking.booking_id)}?{query}"

    async def resolve(
        self,
        token: str,
        user_agent: str | None = None,
        source_address: str | None = None,
    ) -> RedirectTarget:
        """Follow a magic link: count the access, log it, build the redirect.

        Raises:
            NotFoundError: If the token was never issued
        """
        if not is_magic_link_token(token):
            raise NotFoundError("Magic link", token)

        booking = await self._store.increment_access(token)
        await self._recorder.track(
            token,
            AnalyticsEventCreate(
                event=ACCESS_EVENT,
                user_agent=user_agent[:1000] if user_agent else None,
                ip_address=source_address[:45] if source_address else None,
            ),
        )
        logger.info(f"Magic link resolved for booking {booking.booking_id} (access #{booking.access_count})")

        return RedirectTarget(
            booking_id=booking.booking_id,
            url=self.redirect_url(booking),
            status=booking.status,
            payment_status=booking.payment_status,
        )

    async def preview(self, token: str) -> MagicLinkPreview:
        """Inspect where a magic link leads without counting an access."""
        if not is_magic_link_token(token):
            raise NotFoundError("Magic link", token)

        booking = await self._store.get_by_magic_link(token)
        return MagicLinkPreview(
            booking_id=booking.booking_id,
            redirect_url=self.redirect_url(booking),
            status=booking.status,
            booking_details=BookingResponse.model_validate(booking),
        )
