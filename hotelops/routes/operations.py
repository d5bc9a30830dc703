import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends, Query
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..auth.security import CallerIdentity, get_caller
from ..config import settings
from ..db import get_db
from ..errors import ValidationFailed
from ..models.models import Operation
from ..schemas.operations import OPERATION_TYPES, OperationUpdate, operation_adapter
from ..services.events import EventHub, announce_operation, get_event_hub
from ..services.relationships import get_in_scope, validate_operation_relationships
from ..services.scope import CompanyScope, strict_scope


router = APIRouter(prefix="/api/operations", tags=["operations"])
log = structlog.get_logger()

# Per-type columns plus the shared ones an update may touch
OPERATION_COLUMNS = (
    "room_number",
    "description",
    "status",
    "guest_name",
    "number_of_people",
    "check_in_date",
    "check_out_date",
    "assigned_to_department",
    "priority",
    "notes",
    "meal_type",
    "image_url",
    "rating",
    "feedback",
)
REFERENCE_COLUMNS = {
    "employee": "employee_id",
    "service": "service_id",
    "assigned_by": "assigned_by_id",
    "food": "food_id",
}


def _iso(v):
    return v.isoformat() if v else None


def _full_name(e) -> Optional[str]:
    return f"{e.first_name} {e.last_name}" if e is not None else None


def operation_to_dict(op: Operation) -> dict:
    out = {
        "id": str(op.id),
        "type": op.type,
        "company_id": str(op.company_id),
        "company_name": op.company.name if op.company is not None else None,
        "employee_id": str(op.employee_id) if op.employee_id else None,
        "employee_name": _full_name(op.employee),
        "service_id": str(op.service_id) if op.service_id else None,
        "service_name": op.service.name if op.service is not None else None,
        "assigned_by_id": str(op.assigned_by_id) if op.assigned_by_id else None,
        "assigned_by_name": _full_name(op.assigned_by),
        "food_id": str(op.food_id) if op.food_id else None,
        "created_at": _iso(op.created_at),
        "updated_at": _iso(op.updated_at),
    }
    for col in OPERATION_COLUMNS:
        out[col] = getattr(op, col)
    out["check_in_date"] = _iso(op.check_in_date)
    out["check_out_date"] = _iso(op.check_out_date)
    return out


def _as_uuid(value: Optional[str]) -> Optional[uuid.UUID]:
    return uuid.UUID(value) if value else None


def _validate_payload(payload: dict):
    try:
        return operation_adapter.validate_python(payload)
    except ValidationError as e:
        raise ValidationFailed(detail=jsonable_encoder(e.errors()))


@router.get("")
def list_operations(
    type: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    room_number: Optional[str] = Query(default=None, alias="roomNumber"),
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
):
    if type and type not in OPERATION_TYPES:
        raise ValidationFailed(f"Unknown operation type: {type}")
    q = scope.filter(db.query(Operation), Operation.company_id)
    if type:
        q = q.filter(Operation.type == type)
    if status:
        q = q.filter(Operation.status == status)
    if room_number:
        q = q.filter(Operation.room_number == room_number.strip())
    cap = min(limit or settings.operations_list_limit, settings.operations_list_limit)
    rows = q.order_by(Operation.created_at.desc()).limit(cap).all()
    return [operation_to_dict(op) for op in rows]


@router.get("/{operation_id}")
def get_operation(operation_id: str, db: Session = Depends(get_db), scope: CompanyScope = Depends(strict_scope)):
    return operation_to_dict(get_in_scope(db, Operation, operation_id, scope, "operation"))


@router.post("", status_code=201)
async def create_operation(
    body: dict = Body(...),
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    caller: CallerIdentity = Depends(get_caller),
    hub: EventHub = Depends(get_event_hub),
):
    data = _validate_payload(scope.stamp(dict(body)))
    refs = validate_operation_relationships(
        db,
        scope.require_company(data.company),
        employee=data.employee,
        service=data.service,
        assigned_by=data.assigned_by,
        food=getattr(data, "food", None),
    )
    op = Operation(
        **data.column_values(),
        company_id=_as_uuid(refs["company_id"]),
        employee_id=_as_uuid(refs["employee_id"]),
        service_id=_as_uuid(refs["service_id"]),
        assigned_by_id=_as_uuid(refs["assigned_by_id"]),
        food_id=_as_uuid(refs["food_id"]),
    )
    db.add(op)
    db.commit()
    db.refresh(op)
    out = operation_to_dict(op)
    log.info("operation_created", operation_id=out["id"], type=op.type, company_id=out["company_id"], by=caller.subject_id)
    await announce_operation(hub, "operation:created", out)
    return out


@router.put("/{operation_id}")
async def update_operation(
    operation_id: str,
    payload: OperationUpdate,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    hub: EventHub = Depends(get_event_hub),
):
    op = get_in_scope(db, Operation, operation_id, scope, "operation")
    changes = payload.model_dump(exclude_unset=True)

    # Re-validate the merged record so the type's required fields still hold
    merged = {col: getattr(op, col) for col in OPERATION_COLUMNS}
    merged.update({k: v for k, v in changes.items() if k not in REFERENCE_COLUMNS})
    merged = {k: v for k, v in merged.items() if v is not None}
    merged["type"] = op.type
    data = _validate_payload(merged)
    unknown = sorted(k for k in changes if k not in type(data).model_fields)
    if unknown:
        raise ValidationFailed(
            f"Fields not allowed for {op.type} operations: {', '.join(unknown)}",
            detail={"fields": unknown},
        )

    refs_in = {}
    for field, column in REFERENCE_COLUMNS.items():
        refs_in[field] = changes[field] if field in changes else getattr(op, column)
    refs = validate_operation_relationships(db, op.company_id, **refs_in)

    for k, v in data.column_values().items():
        if k != "type":
            setattr(op, k, v)
    for column in REFERENCE_COLUMNS.values():
        setattr(op, column, _as_uuid(refs[column]))
    db.commit()
    db.refresh(op)
    out = operation_to_dict(op)
    await announce_operation(hub, "operation:updated", out)
    return out


@router.delete("/{operation_id}")
async def delete_operation(
    operation_id: str,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    caller: CallerIdentity = Depends(get_caller),
    hub: EventHub = Depends(get_event_hub),
):
    op = get_in_scope(db, Operation, operation_id, scope, "operation")
    snapshot = operation_to_dict(op)
    db.delete(op)
    db.commit()
    log.info("operation_deleted", operation_id=snapshot["id"], by=caller.subject_id)
    await announce_operation(hub, "operation:deleted", snapshot)
    return {"message": "Operation deleted successfully", "id": snapshot["id"]}
