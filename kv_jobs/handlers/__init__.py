"""Built-in job handlers."""

from kv_jobs.handlers.data import (
    ExportPayload,
    ImportPayload,
    export_records,
    import_records,
)
from kv_jobs.handlers.maintenance import CleanupPayload, cleanup
from kv_jobs.handlers.messaging import (
    EmailPayload,
    NotificationPayload,
    send_email,
    send_notification,
)

__all__ = [
    "CleanupPayload",
    "EmailPayload",
    "ExportPayload",
    "ImportPayload",
    "NotificationPayload",
    "register_builtin_handlers",
]


def register_builtin_handlers(registry) -> None:
    """Register the email, export, import, cleanup and notification types."""
    registry.register(
        "email", send_email, timeout=60, retries=3, payload_model=EmailPayload
    )
    registry.register(
        "export", export_records, timeout=300, retries=1, payload_model=ExportPayload
    )
    registry.register(
        "import", import_records, timeout=600, retries=2, payload_model=ImportPayload
    )
    registry.register(
        "cleanup", cleanup, timeout=120, retries=1, payload_model=CleanupPayload
    )
    registry.register(
        "notification",
        send_notification,
        timeout=30,
        retries=5,
        payload_model=NotificationPayload,
    )
