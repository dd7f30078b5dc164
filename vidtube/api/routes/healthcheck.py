"""
Vidtube API — Healthcheck.
"""
from __future__ import annotations

from fastapi import APIRouter

from vidtube.schemas.schemas import ApiResponse

router = APIRouter(prefix="/healthcheck", tags=["Health"])


@router.get("", response_model=ApiResponse[dict])
async def healthcheck():
    return ApiResponse.build({"status": "OK"}, "Health check passed")
