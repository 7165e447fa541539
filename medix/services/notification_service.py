"""Notification service: in-app history plus FCM push delivery."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from firebase_admin import messaging
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medix.core.firebase import is_firebase_initialized
from medix.models.notifications import notifications, push_tokens
from medix.schemas.notifications import NotificationType

logger = structlog.get_logger(__name__)


def _format_time(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%b %d, %H:%M")
    return str(value)


class NotificationService:
    """Service for notifications and push tokens."""

    @staticmethod
    async def send_push_notification(
        tokens: list[str],
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> tuple[int, int]:
        """
        Send push notification to multiple devices.

        Returns:
            Tuple of (success_count, failure_count)
        """
        if not tokens:
            return 0, 0

        try:
            message = messaging.MulticastMessage(
                notification=messaging.Notification(title=title, body=body),
                data=data or {},
                tokens=tokens,
                android=messaging.AndroidConfig(priority="high"),
            )
            response = messaging.send_each_for_multicast(message)
        except Exception as e:
            logger.error("push_notification_failed", error=str(e), title=title)
            return 0, len(tokens)

        logger.info(
            "push_notification_sent",
            title=title,
            success_count=response.success_count,
            failure_count=response.failure_count,
        )
        return response.success_count, response.failure_count

    @staticmethod
    async def send_to_user(
        db: AsyncSession,
        user_id: UUID,
        title: str,
        body: str,
        notification_type: NotificationType = NotificationType.OTHER,
        data: dict[str, str] | None = None,
        priority: str = "normal",
    ) -> dict[str, Any]:
        """
        Record a notification for a user and push it to their devices.

        The row is kept whatever happens to delivery; its ``status`` ends as
        ``delivered``, ``failed`` (with ``failure_reason``) or ``sent``.

        Returns:
            The notification record
        """
        result = await db.execute(
            notifications.insert()
            .values(
                user_id=user_id,
                title=title,
                body=body,
                notification_type=notification_type.value,
                priority=priority,
                data=data,
                status="pending",
            )
            .returning(notifications.c.id)
        )
        notification_id = result.scalar_one()

        token_result = await db.execute(
            select(push_tokens.c.fcm_token).where(
                push_tokens.c.user_id == user_id,
                push_tokens.c.is_active.is_(True),
            )
        )
        tokens = list(token_result.scalars().all())

        now = datetime.now(UTC)
        if not tokens:
            values: dict[str, Any] = {"status": "failed", "failure_reason": "No active tokens for user"}
        elif not is_firebase_initialized():
            values = {"status": "failed", "failure_reason": "Push delivery is not configured"}
        else:
            success_count, failure_count = await NotificationService.send_push_notification(
                tokens, title, body, data
            )
            if success_count > 0:
                values = {"status": "delivered", "sent_at": now}
            else:
                values = {
                    "status": "failed",
                    "sent_at": now,
                    "failure_reason": f"{failure_count} device(s) rejected the message",
                }

        result = await db.execute(
            update(notifications)
            .where(notifications.c.id == notification_id)
            .values(**values)
            .returning(notifications)
        )
        record = dict(result.mappings().one())
        await db.commit()

        logger.info(
            "notification_recorded",
            user_id=str(user_id),
            notification_type=notification_type.value,
            status=record["status"],
        )
        return record

    @staticmethod
    async def register_token(
        db: AsyncSession,
        user_id: UUID,
        fcm_token: str,
        platform: str,
    ) -> dict[str, Any]:
        """
        Register or refresh an FCM token for a user.

        Older tokens of the same user and platform are deactivated. A token
        previously registered by another user moves to this user.
        """
        now = datetime.now(UTC)

        await db.execute(
            update(push_tokens)
            .where(
                push_tokens.c.user_id == user_id,
                push_tokens.c.platform == platform,
                push_tokens.c.fcm_token != fcm_token,
            )
            .values(is_active=False)
        )

        result = await db.execute(
            update(push_tokens)
            .where(push_tokens.c.fcm_token == fcm_token)
            .values(user_id=user_id, platform=platform, is_active=True, last_used_at=now)
            .returning(push_tokens)
        )
        row = result.mappings().first()

        if row is None:
            result = await db.execute(
                push_tokens.insert()
                .values(
                    user_id=user_id,
                    fcm_token=fcm_token,
                    platform=platform,
                    is_active=True,
                    last_used_at=now,
                )
                .returning(push_tokens)
            )
            row = result.mappings().one()

        record = dict(row)
        await db.commit()
        logger.info("push_token_registered", user_id=str(user_id), platform=platform)
        return record

    @staticmethod
    async def get_user_notifications(
        db: AsyncSession,
        user_id: UUID,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        Get a user's notification history, newest first.

        Returns:
            Tuple of (notifications, total count)
        """
        total_result = await db.execute(
            select(func.count()).select_from(notifications).where(notifications.c.user_id == user_id)
        )
        total = total_result.scalar() or 0

        result = await db.execute(
            select(notifications)
            .where(notifications.c.user_id == user_id)
            .order_by(notifications.c.created_at.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return [dict(row) for row in result.mappings().all()], total

    @staticmethod
    async def mark_notification_as_read(
        db: AsyncSession,
        notification_id: UUID,
        user_id: UUID,
    ) -> bool:
        """
        Mark a notification as read.

        Returns:
            False if the notification does not exist or belongs to another user
        """
        result = await db.execute(
            update(notifications)
            .where(notifications.c.id == notification_id, notifications.c.user_id == user_id)
            .values(status="read", read_at=datetime.now(UTC))
        )
        await db.commit()
        return result.rowcount > 0

    @staticmethod
    async def send_booking_confirmation(
        db: AsyncSession,
        patient_user_id: UUID,
        doctor_user_id: UUID,
        appointment: dict[str, Any],
    ) -> None:
        """Tell the patient and the doctor that a booking went through."""
        when = _format_time(appointment["appointment_start_time"])
        data = {"appointment_id": str(appointment["id"]), "screen": "/appointments"}

        await NotificationService.send_to_user(
            db,
            patient_user_id,
            title="Appointment Confirmed",
            body=f"Your appointment on {when} is confirmed and paid.",
            notification_type=NotificationType.APPOINTMENT_CONFIRMATION,
            data=data,
        )
        await NotificationService.send_to_user(
            db,
            doctor_user_id,
            title="New Appointment",
            body=f"A patient booked your time on {when}.",
            notification_type=NotificationType.APPOINTMENT_CONFIRMATION,
            data=data,
        )

    @staticmethod
    async def send_cancellation_notification(
        db: AsyncSession,
        user_id: UUID,
        appointment: dict[str, Any],
    ) -> None:
        """Tell a user that an appointment was cancelled."""
        await NotificationService.send_to_user(
            db,
            user_id,
            title="Appointment Cancelled",
            body=f"The appointment on {_format_time(appointment['appointment_start_time'])} "
            "was cancelled.",
            notification_type=NotificationType.APPOINTMENT_CANCELLED,
            data={"appointment_id": str(appointment["id"]), "screen": "/appointments"},
        )

    @staticmethod
    async def send_appointment_status_notification(
        db: AsyncSession,
        user_id: UUID,
        appointment: dict[str, Any],
    ) -> None:
        """Tell the patient that their appointment changed status."""
        await NotificationService.send_to_user(
            db,
            user_id,
            title="Appointment Updated",
            body=f"Your appointment on {_format_time(appointment['appointment_start_time'])} "
            f"is now {appointment['status_code']}.",
            notification_type=NotificationType.APPOINTMENT_STATUS,
            data={
                "appointment_id": str(appointment["id"]),
                "status": str(appointment["status_code"]),
            },
        )
