"""
Room board derived from check-in / check-out history.

A room is occupied when its most recent check-in is strictly later than its most
recent check-out, or when it has never been checked out. Check-ins are dated by
check_in_date and check-outs by check_out_date, both falling back to created_at.
The board is recomputed from the records on every read and holds no state.
"""
import re
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional


CHECK_IN = "check-in"
CHECK_OUT = "check-out"
ROOM_OPERATION_TYPES = (CHECK_IN, CHECK_OUT)

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class RoomStatus:
    room_number: str
    occupied: bool
    guest_name: str
    check_in_date: Optional[datetime]
    number_of_people: int
    company_id: Optional[str] = None

    @property
    def status(self) -> str:
        return "Occupied" if self.occupied else "Vacant"

    def to_dict(self) -> dict:
        out = asdict(self)
        out["status"] = self.status
        out["check_in_date"] = self.check_in_date.isoformat() if self.check_in_date else None
        return out


def _field(op: Any, name: str) -> Any:
    if isinstance(op, dict):
        return op.get(name)
    return getattr(op, name, None)


def _as_utc(value: Any) -> Optional[datetime]:
    # SQLite hands back naive datetimes; treat them as UTC so they compare
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return None


def effective_date(op: Any) -> datetime:
    own = "check_in_date" if _field(op, "type") == CHECK_IN else "check_out_date"
    return _as_utc(_field(op, own)) or _as_utc(_field(op, "created_at")) or _EPOCH


def room_sort_key(room_number: str) -> int:
    """Leading integer of the room number; room numbers without one sort as 0."""
    match = _LEADING_INT_RE.match(room_number)
    return int(match.group(1)) if match else 0


def _latest(ops: List[Any]) -> Optional[Any]:
    if not ops:
        return None
    # equal stay dates: the most recently recorded entry wins
    return max(ops, key=lambda op: (effective_date(op), _as_utc(_field(op, "created_at")) or _EPOCH))


def derive_room_statuses(operations: Iterable[Any], company_id: Optional[str] = None) -> List[RoomStatus]:
    """
    Reduce check-in / check-out records of one company to the current room board,
    ordered by room number. Records of other types or without a room number are ignored.
    """
    check_ins: Dict[str, List[Any]] = defaultdict(list)
    check_outs: Dict[str, List[Any]] = defaultdict(list)
    for op in operations:
        room = _field(op, "room_number")
        room = str(room).strip() if room is not None else ""
        if not room:
            continue
        op_type = _field(op, "type")
        if op_type == CHECK_IN:
            check_ins[room].append(op)
        elif op_type == CHECK_OUT:
            check_outs[room].append(op)

    rooms: List[RoomStatus] = []
    for room in set(check_ins) | set(check_outs):
        latest_in = _latest(check_ins.get(room, []))
        latest_out = _latest(check_outs.get(room, []))
        occupied = latest_in is not None and (
            latest_out is None or effective_date(latest_in) > effective_date(latest_out)
        )
        if occupied:
            rooms.append(RoomStatus(
                room_number=room,
                occupied=True,
                guest_name=_field(latest_in, "guest_name") or "Occupied",
                check_in_date=effective_date(latest_in),
                number_of_people=_field(latest_in, "number_of_people") or 1,
                company_id=company_id,
            ))
        else:
            rooms.append(RoomStatus(
                room_number=room,
                occupied=False,
                guest_name="Vacant",
                check_in_date=None,
                number_of_people=0,
                company_id=company_id,
            ))

    rooms.sort(key=lambda r: (room_sort_key(r.room_number), r.room_number))
    return rooms


def derive_room_board(operations: Iterable[Any]) -> List[RoomStatus]:
    """Room board across several companies: each company's rooms are reduced separately."""
    by_company: Dict[str, List[Any]] = defaultdict(list)
    for op in operations:
        by_company[str(_field(op, "company_id"))].append(op)
    board: List[RoomStatus] = []
    for company_id in sorted(by_company):
        board.extend(derive_room_statuses(by_company[company_id], company_id=company_id))
    return board
