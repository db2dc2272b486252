from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError

from fieldguard.schemas.permissions import (
    PermissionCreate,
    PermissionRecord,
    PermissionScope,
    PermissionUpdate,
    ReconciliationOut,
    UnitErrorOut,
)
from fieldguard.security.dependencies import get_guard, require_admin_role
from fieldguard.service import FieldGuard

router = APIRouter(
    prefix="/attribute-permissions",
    tags=["attribute_permissions"],
    dependencies=[Depends(require_admin_role)],
)


def _filters(
    role: int | None = None,
    type: str | None = None,
    model: str | None = None,
    scope: PermissionScope | None = None,
    attribute: str | None = None,
    enabled: bool | None = None,
) -> dict[str, object]:
    given = {"role": role, "type": type, "model": model, "scope": scope, "attribute": attribute, "enabled": enabled}
    return {key: value for key, value in given.items() if value is not None}


@router.get("", response_model=list[PermissionRecord])
async def list_permissions(
    filters: dict[str, object] = Depends(_filters),
    sort: str | None = Query(None, alias="_sort"),
    start: int = Query(0, alias="_start", ge=0),
    limit: int | None = Query(100, alias="_limit", ge=1),
    guard: FieldGuard = Depends(get_guard),
) -> list[PermissionRecord]:
    try:
        return await guard.store.find(filters, start=start, limit=limit, sort=sort)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/count", response_model=int)
async def count_permissions(
    filters: dict[str, object] = Depends(_filters),
    guard: FieldGuard = Depends(get_guard),
) -> int:
    return await guard.store.count(filters)


@router.post("/reconcile", response_model=ReconciliationOut)
async def reconcile_permissions(guard: FieldGuard = Depends(get_guard)) -> ReconciliationOut:
    report = await guard.reconcile()
    return ReconciliationOut(
        created=report.created,
        updated=report.updated,
        deleted=report.deleted,
        errors=[UnitErrorOut(role=e.role_id, model=e.model, error=repr(e.error)) for e in report.errors],
    )


@router.get("/{id}", response_model=PermissionRecord)
async def get_permission(id: int, guard: FieldGuard = Depends(get_guard)) -> PermissionRecord:
    permission = await guard.store.find_one({"id": id})
    if permission is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission not found")
    return permission


@router.post("", response_model=PermissionRecord, status_code=status.HTTP_201_CREATED)
async def create_permission(body: PermissionCreate, guard: FieldGuard = Depends(get_guard)) -> PermissionRecord:
    try:
        record = PermissionRecord(**body.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors()) from exc
    return await guard.store.create(record)


@router.put("/{id}", response_model=PermissionRecord)
async def update_permission(
    id: int,
    body: PermissionUpdate,
    guard: FieldGuard = Depends(get_guard),
) -> PermissionRecord:
    current = await get_permission(id, guard)
    try:
        record = PermissionRecord(**{**current.model_dump(), **body.model_dump(exclude_unset=True)})
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors()) from exc
    return await guard.store.update(record)


@router.delete("/{id}", response_model=PermissionRecord)
async def delete_permission(id: int, guard: FieldGuard = Depends(get_guard)) -> PermissionRecord:
    current = await get_permission(id, guard)
    await guard.store.delete(current)
    return current
