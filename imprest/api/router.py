from fastapi import APIRouter

from imprest.api.imprest import imprest_router

api_router = APIRouter()
api_router.include_router(imprest_router)
