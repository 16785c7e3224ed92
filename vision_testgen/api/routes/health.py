from typing import List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from datetime import datetime

from vision_testgen.config.settings import settings
from vision_testgen.core.dependencies import get_completion_providers
from vision_testgen.repositories.interfaces.completion_provider import ICompletionProvider

router = APIRouter(prefix="/health", tags=["health"])

VERSION = "1.0.0"


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str


@router.get("/", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        version=VERSION,
        environment=settings.environment,
    )


@router.get("/readiness")
async def readiness_check(providers: List[ICompletionProvider] = Depends(get_completion_providers)):
    """Ready when the default completion provider has credentials"""
    checks = {provider.name: "ok" if provider.is_configured else "not_configured" for provider in providers}

    return {
        "status": "ready" if checks.get(settings.ai_provider) == "ok" else "not_ready",
        "default_provider": settings.ai_provider,
        "checks": checks,
        "timestamp": datetime.utcnow(),
    }
