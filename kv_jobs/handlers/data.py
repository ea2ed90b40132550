"""Export and import handlers."""

from typing import Literal

from pydantic import BaseModel


class ExportPayload(BaseModel):
    entity: str = "unknown"
    format: Literal["csv", "xlsx", "json", "pdf"] = "csv"
    user_id: int = 0


class ImportPayload(BaseModel):
    file: str = "unknown"
    entity: str = "unknown"


async def export_records(ctx, payload: ExportPayload):
    """
    Export an entity's records for a user.

    Args:
        ctx: Context dict with job, logger and store
        payload: Validated export payload
    """
    logger = ctx["logger"]
    logger.info(
        f"Exporting {payload.entity} as {payload.format} for user {payload.user_id}"
    )
    return {"entity": payload.entity, "format": payload.format}


async def import_records(ctx, payload: ImportPayload):
    """Import a previously uploaded file into an entity."""
    logger = ctx["logger"]
    logger.info(f"Importing {payload.file} into {payload.entity}")
    return {"entity": payload.entity, "file": payload.file}
