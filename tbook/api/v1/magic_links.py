"""Magic link endpoints: redirect, preview and analytics."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from tbook.api.deps import get_analytics_recorder, get_magic_link_resolver
from tbook.core.middleware import get_client_ip, track_limiter
from tbook.schemas.common import ApiResponse
from tbook.schemas.magic_link import (
    AnalyticsEventCreate,
    AnalyticsEventResponse,
    MagicLinkAnalytics,
    MagicLinkPreview,
)
from tbook.services.analytics_service import AnalyticsRecorder
from tbook.services.magic_link_service import MagicLinkResolver

router = APIRouter()


@router.get("/{token}", response_class=RedirectResponse, status_code=status.HTTP_302_FOUND)
async def follow_magic_link(
    token: str,
    request: Request,
    resolver: Annotated[MagicLinkResolver, Depends(get_magic_link_resolver)],
) -> RedirectResponse:
    """Count the access and send the holder to their booking page."""
    target = await resolver.resolve(
        token,
        user_agent=request.headers.get("User-Agent"),
        source_address=get_client_ip(request),
    )
    return RedirectResponse(target.url, status_code=status.HTTP_302_FOUND)


@router.get(
    "/{token}/preview",
    response_model=ApiResponse[MagicLinkPreview],
    response_model_exclude_none=True,
)
async def preview_magic_link(
    token: str,
    resolver: Annotated[MagicLinkResolver, Depends(get_magic_link_resolver)],
) -> ApiResponse[MagicLinkPreview]:
    """Show where a magic link leads without counting an access."""
    return ApiResponse(data=await resolver.preview(token))


@router.post(
    "/{token}/track",
    response_model=ApiResponse[AnalyticsEventResponse],
    response_model_exclude_none=True,
    dependencies=[Depends(track_limiter)],
)
async def track_event(
    token: str,
    event: AnalyticsEventCreate,
    request: Request,
    recorder: Annotated[AnalyticsRecorder, Depends(get_analytics_recorder)],
) -> ApiResponse[AnalyticsEventResponse]:
    """Record a client-side interaction with a magic link page."""
    user_agent = request.headers.get("User-Agent")
    event = event.model_copy(
        update={
            "user_agent": event.user_agent or (user_agent[:1000] if user_agent else None),
            "ip_address": event.ip_address or get_client_ip(request)[:45],
        }
    )
    record = await recorder.track(token, event)
    if record is None:
        return ApiResponse(message="Event accepted but not stored")
    return ApiResponse(data=AnalyticsEventResponse.model_validate(record), message="Event tracked")


@router.get(
    "/{token}/analytics",
    response_model=ApiResponse[MagicLinkAnalytics],
    response_model_exclude_none=True,
)
async def get_magic_link_analytics(
    token: str,
    recorder: Annotated[AnalyticsRecorder, Depends(get_analytics_recorder)],
) -> ApiResponse[MagicLinkAnalytics]:
    """Access summary and event log for a magic link."""
    summary = await recorder.summarize(token)
    events = await recorder.list_events(token)
    return ApiResponse(
        data=MagicLinkAnalytics(
            **summary.model_dump(),
            events=[AnalyticsEventResponse.model_validate(e) for e in events],
        )
    )
