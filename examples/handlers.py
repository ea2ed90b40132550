"""Example job handlers, loaded with KV_JOBS_HANDLERS_MODULE=examples.handlers."""

from pydantic import BaseModel


class ResizePayload(BaseModel):
    image: str
    width: int = 800


async def resize_image(ctx, payload: ResizePayload):
    """Pretend to resize an image."""
    ctx["logger"].info(f"Resizing {payload.image} to {payload.width}px")
    return {"image": payload.image, "width": payload.width}


async def warm_cache(ctx, payload):
    # Untyped handlers receive the raw payload dict
    keys = payload.get("keys", [])
    for key in keys:
        await ctx["store"].set(f"warm:{key}", True, 300)
    return {"warmed": len(keys)}


def register_handlers(registry):
    registry.register(
        "resize_image", resize_image, timeout=120, retries=2, payload_model=ResizePayload
    )
    registry.register("warm_cache", warm_cache, queue="low")
