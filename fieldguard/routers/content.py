from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from fieldguard.permissions.values import MODEL_MARKER, PLUGIN_MARKER
from fieldguard.security.context import CallerContext
from fieldguard.security.dependencies import get_caller_context, get_guard
from fieldguard.service import FieldGuard

router = APIRouter(prefix="/content", tags=["content"])


async def filtered_or_404(guard: FieldGuard, ctx: CallerContext, raw: Any) -> Any:
    """
    Filter ``raw`` for the caller, answering 404 when nothing is visible.

    Hidden resources look exactly like missing ones.
    """

    filtered = await guard.serialize(ctx, raw)
    if filtered is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return filtered


@router.post("/{model}/preview")
async def preview(
    model: str,
    payload: dict[str, Any] = Body(...),
    plugin: str | None = None,
    ctx: CallerContext = Depends(get_caller_context),
    guard: FieldGuard = Depends(get_guard),
) -> Any:
    """Show what the caller's role would see of ``payload`` as an instance of ``model``."""

    raw = {**payload, MODEL_MARKER: model}
    if plugin:
        raw[PLUGIN_MARKER] = plugin
    return await filtered_or_404(guard, ctx, raw)
