from fastapi import APIRouter
from vision_testgen.api.routes import test_cases, health

api_router = APIRouter()

# Include all route modules
api_router.include_router(health.router)
api_router.include_router(test_cases.router)
