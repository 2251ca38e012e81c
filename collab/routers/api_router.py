from fastapi import APIRouter
from collab.routers import leave_policies, leave_requests, notifications

# Centralized API router hub: main.py only imports this module
api_router = APIRouter()

api_router.include_router(leave_policies.router, tags=["Leave Policies"])
api_router.include_router(leave_requests.router, tags=["Leave Requests"])
api_router.include_router(notifications.router, tags=["Notifications"])
