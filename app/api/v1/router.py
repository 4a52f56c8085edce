from fastapi import APIRouter

from app.api.v1.endpoints import (
    admin,
    admin_verifications,
    ai,
    announcements,
    auth,
    community,
    complaints,
    contact,
    feedback,
    guest,
    messaging,
    notifications,
    polls,
    users,
)
from app.schemas.common import ErrorResponse

# Create API router; every failure shares the {"error": ...} body
api_router = APIRouter(
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    }
)

# Include routers
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(community.router, prefix="/community", tags=["Community"])
api_router.include_router(contact.router, prefix="/contact", tags=["Contact"])
api_router.include_router(announcements.user_router, prefix="/user/announcements", tags=["Announcements"])
api_router.include_router(users.router, prefix="/user", tags=["User"])
api_router.include_router(guest.router, prefix="/guest", tags=["Guest"])
api_router.include_router(
    admin_verifications.router, prefix="/admin/verification-requests", tags=["Admin Verification"]
)
api_router.include_router(announcements.admin_router, prefix="/admin/announcements", tags=["Announcements"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
api_router.include_router(polls.router, prefix="/polls", tags=["Polls"])
api_router.include_router(complaints.router, prefix="/complaints", tags=["Complaints"])
api_router.include_router(feedback.router, prefix="/feedback", tags=["Feedback"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(ai.router, prefix="/ai", tags=["AI"])
api_router.include_router(messaging.router, prefix="/messaging", tags=["Messaging"])

__all__ = ["api_router"]
