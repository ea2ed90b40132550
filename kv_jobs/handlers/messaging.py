"""Email and notification handlers."""

from typing import Literal

from pydantic import BaseModel


class EmailPayload(BaseModel):
    to: str = "unknown"
    subject: str = "No Subject"
    body: str = ""


class NotificationPayload(BaseModel):
    user_id: int = 0
    message: str = ""
    type: Literal["info", "success", "warning", "error"] = "info"


async def send_email(ctx, payload: EmailPayload):
    """
    Send an email.

    Args:
        ctx: Context dict with job, logger and store
        payload: Validated email payload
    """
    logger = ctx["logger"]
    job = ctx["job"]

    logger.info(f"Sending email to {payload.to}: {payload.subject} (job {job.id})")

    # Mail transport integration goes here; the queue only records the outcome.
    return {"to": payload.to}


async def send_notification(ctx, payload: NotificationPayload):
    """Deliver an in-app notification to a user."""
    logger = ctx["logger"]

    logger.info(
        f"Sending {payload.type} notification to user {payload.user_id}: "
        f"{payload.message}"
    )
    return {"user_id": payload.user_id}
