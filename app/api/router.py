from fastapi import APIRouter
from app.api.endpoints import agent

api_router = APIRouter()

# Combine all sub-routers into one
api_router.include_router(agent.router)
