from fastapi import APIRouter
from inventory_api.api.v1 import (
    auth,
    users,
    admin,
    inventory,
    reports,
    audit,
    realtime,
    websocket,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(audit.router, prefix="/audit", tags=["audit"])
api_router.include_router(realtime.router, prefix="/realtime", tags=["realtime"])
api_router.include_router(websocket.router, tags=["websocket"])
