"""
UniMatch — Discovery API
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from unimatch.api.deps import get_current_user
from unimatch.database import get_db
from unimatch.models.user import User
from unimatch.schemas.user import DiscoverNextResponse, ProfileResponse
from unimatch.services.discovery_service import DiscoveryService

router = APIRouter()

_discovery_service: DiscoveryService | None = None


def _get_discovery_service() -> DiscoveryService:
    global _discovery_service
    if _discovery_service is None:
        _discovery_service = DiscoveryService()
    return _discovery_service


@router.get(
    "/next",
    response_model=DiscoverNextResponse,
    summary="Next profile to swipe on",
)
async def discover_next(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DiscoverNextResponse:
    candidate = await _get_discovery_service().next_candidate(current_user, db)
    if candidate is None:
        return DiscoverNextResponse(message="No more users to show")
    return DiscoverNextResponse(profile=ProfileResponse.model_validate(candidate))


@router.get(
    "",
    response_model=list[ProfileResponse],
    summary="A page of discoverable profiles",
)
async def discover_list(
    limit: int | None = Query(None, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[ProfileResponse]:
    candidates = await _get_discovery_service().list_candidates(current_user, db, limit)
    return [ProfileResponse.model_validate(c) for c in candidates]
