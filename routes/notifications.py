"""
Notification feed endpoints (V1 API).
"""

from fastapi import HTTPException, Query

from registry_engine.errors import RegistryError
from routes.common import http_error


def register_notification_routes(app, notifications):
    """Register notification endpoints on the FastAPI app."""

    @app.get("/api/v1/notifications")
    async def list_notifications(
        limit: int = Query(50, ge=1, le=500),
        unread_only: bool = False
    ):
        try:
            items = notifications.list(limit=limit, unread_only=unread_only)
            unread = notifications.unread_count()
        except RegistryError as e:
            raise http_error(e) from e
        return {"unread": unread, "notifications": items}

    @app.post("/api/v1/notifications/read-all")
    async def mark_all_notifications_read():
        try:
            updated = notifications.mark_all_read()
        except RegistryError as e:
            raise http_error(e) from e
        return {"updated": updated}

    @app.post("/api/v1/notifications/{notification_id}/read")
    async def mark_notification_read(notification_id: int):
        try:
            found = notifications.mark_read(notification_id)
        except RegistryError as e:
            raise http_error(e) from e
        if not found:
            raise HTTPException(status_code=404, detail="Notification not found")
        return {"status": "read", "id": notification_id}

    @app.delete("/api/v1/notifications")
    async def clear_notifications():
        try:
            deleted = notifications.clear()
        except RegistryError as e:
            raise http_error(e) from e
        return {"deleted": deleted}
