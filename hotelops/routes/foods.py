from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..models.models import Food
from ..schemas.foods import FoodCreate, FoodUpdate
from ..services.relationships import ensure_company_active, get_in_scope
from ..services.scope import CompanyScope, strict_scope


router = APIRouter(prefix="/api/foods", tags=["foods"])


def food_to_dict(f: Food) -> dict:
    return {
        "id": str(f.id),
        "name": f.name,
        "description": f.description,
        "category": f.category,
        "image_url": f.image_url,
        "price": f.price,
        "is_available": f.is_available,
        "company_id": str(f.company_id),
        "created_at": f.created_at.isoformat() if f.created_at else None,
        "updated_at": f.updated_at.isoformat() if f.updated_at else None,
    }


@router.get("")
def list_foods(
    category: Optional[str] = Query(default=None),
    available: Optional[bool] = Query(default=None),
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
):
    q = scope.filter(db.query(Food), Food.company_id)
    if category:
        q = q.filter(Food.category == category)
    if available is not None:
        q = q.filter(Food.is_available == available)
    return [food_to_dict(f) for f in q.order_by(Food.category.asc(), Food.name.asc()).all()]


@router.get("/{food_id}")
def get_food(food_id: str, db: Session = Depends(get_db), scope: CompanyScope = Depends(strict_scope)):
    return food_to_dict(get_in_scope(db, Food, food_id, scope, "food item"))


@router.post("", status_code=201)
def create_food(
    payload: FoodCreate,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
):
    company = ensure_company_active(db, scope.require_company(payload.company))
    f = Food(**payload.model_dump(exclude={"company"}), company_id=company.id)
    db.add(f)
    db.commit()
    db.refresh(f)
    return food_to_dict(f)


@router.put("/{food_id}")
def update_food(
    food_id: str,
    payload: FoodUpdate,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
):
    f = get_in_scope(db, Food, food_id, scope, "food item")
    data = payload.model_dump(exclude_unset=True)
    # image_url may be cleared explicitly; everything else ignores nulls
    for k, v in data.items():
        if v is None and k != "image_url":
            continue
        setattr(f, k, v)
    db.commit()
    db.refresh(f)
    return food_to_dict(f)


@router.delete("/{food_id}")
def delete_food(
    food_id: str,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
):
    f = get_in_scope(db, Food, food_id, scope, "food item")
    db.delete(f)
    db.commit()
    return {"message": "Food item deleted successfully"}
