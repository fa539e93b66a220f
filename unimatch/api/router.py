"""
UniMatch — Main API Router

Aggregates all REST sub-routers under a single prefix so that
``unimatch.main`` can mount the entire API surface with one
``include_router`` call.  The WebSocket route lives in
``unimatch.api.realtime`` and is mounted at the root.
"""

from fastapi import APIRouter

from unimatch.api import admin, auth, discover, matching, messages

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(matching.router, prefix="/matching", tags=["Matching"])
router.include_router(discover.router, prefix="/discover", tags=["Discover"])
router.include_router(messages.router, prefix="/messages", tags=["Messages"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
