"""Cleanup handler."""

from typing import Literal

from pydantic import BaseModel


class CleanupPayload(BaseModel):
    type: Literal["cache", "logs", "temp"] = "cache"


async def cleanup(ctx, payload: CleanupPayload):
    """
    Run a maintenance cleanup.

    ``cache`` purges expired entries from the backing key-value store;
    ``logs`` and ``temp`` are delegated to the host's own tooling.
    """
    logger = ctx["logger"]

    if payload.type == "cache":
        removed = await ctx["store"].purge_expired()
        logger.info(f"Cleaned up {removed} expired cache entries")
        return {"type": "cache", "removed": removed}

    if payload.type == "logs":
        logger.info("Cleaning up old log files")
    else:
        logger.info("Cleaning up temporary files")
    return {"type": payload.type, "removed": 0}
