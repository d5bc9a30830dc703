from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..services.reports import room_board
from ..services.scope import CompanyScope, strict_scope


router = APIRouter(prefix="/api/rooms", tags=["rooms"])


@router.get("")
def list_rooms(db: Session = Depends(get_db), scope: CompanyScope = Depends(strict_scope)):
    rooms = room_board(db, scope)
    return {
        "rooms": [r.to_dict() for r in rooms],
        "total": len(rooms),
        "occupied": sum(1 for r in rooms if r.occupied),
    }
