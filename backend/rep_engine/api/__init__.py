"""API routes."""

from fastapi import APIRouter

from rep_engine.api import session

api_router = APIRouter()

api_router.include_router(session.router, prefix="/session", tags=["Session"])
