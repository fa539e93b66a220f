"""
UniMatch — Admin maintenance endpoints.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from unimatch.api.deps import get_current_admin
from unimatch.database import get_db
from unimatch.models.user import User
from unimatch.schemas.match import DeduplicateResponse
from unimatch.services.match_service import MatchService

logger = structlog.get_logger("unimatch.api.admin")

router = APIRouter()


@router.post(
    "/matches/deduplicate",
    response_model=DeduplicateResponse,
    summary="Collapse duplicate matches for the same pair",
)
async def deduplicate_matches(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> DeduplicateResponse:
    logger.info("deduplicate_requested", admin_id=admin.id)
    report = await MatchService().deduplicate_matches(db)
    return DeduplicateResponse(**report)
