"""Notification endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from medix.dependencies import CurrentUser, DatabaseSession
from medix.schemas.notifications import (
    NotificationHistoryItem,
    NotificationHistoryResponse,
    PushTokenRegister,
    PushTokenResponse,
)
from medix.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post(
    "/register-token",
    response_model=PushTokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register FCM token",
)
async def register_fcm_token(
    token_data: PushTokenRegister,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> PushTokenResponse:
    """
    Register or update FCM token for the authenticated user.

    This endpoint should be called:
    - After login
    - When the FCM token is refreshed
    """
    token = await NotificationService.register_token(
        db=db,
        user_id=current_user["id"],
        fcm_token=token_data.fcm_token,
        platform=token_data.platform,
    )
    return PushTokenResponse.model_validate(token)


@router.get(
    "/history",
    response_model=NotificationHistoryResponse,
    summary="Get notification history",
)
async def get_notification_history(
    current_user: CurrentUser,
    db: DatabaseSession,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> NotificationHistoryResponse:
    """Get the authenticated user's notifications, newest first."""
    items, total = await NotificationService.get_user_notifications(
        db=db,
        user_id=current_user["id"],
        page=page,
        page_size=page_size,
    )
    return NotificationHistoryResponse(
        notifications=[NotificationHistoryItem.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.patch(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark notification as read",
)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> None:
    """Mark one of the authenticated user's notifications as read."""
    updated = await NotificationService.mark_notification_as_read(
        db=db,
        notification_id=notification_id,
        user_id=current_user["id"],
    )
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
