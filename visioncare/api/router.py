from fastapi import APIRouter

from visioncare.domains.clinic.api import router as clinic_router

api_router = APIRouter()

# API routes (all have the API_V1_STR prefix from the app factory)
api_router.include_router(clinic_router)
