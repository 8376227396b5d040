from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from workshop_booking.database import get_db
from workshop_booking.crud import workshop as crud
from workshop_booking.enums.statuses import WorkshopStatus
from workshop_booking.models.user import User
from workshop_booking.models.workshop import Workshop
from workshop_booking.schemas.common import Pagination
from workshop_booking.schemas.workshop import (
    WorkshopCreate,
    WorkshopResponse,
    WorkshopUpdate,
)
from workshop_booking.services.auth import get_current_user_optional, require_admin

router = APIRouter()


def _with_booking_flags(
    db: Session, workshops: List[Workshop], user: Optional[User]
) -> List[WorkshopResponse]:
    booked = set()
    if user is not None:
        booked = crud.get_booked_workshop_ids(db, user.id, [w.id for w in workshops])

    items = []
    for workshop in workshops:
        item = WorkshopResponse.model_validate(workshop)
        if user is not None:
            item.user_has_booked = workshop.id in booked
        items.append(item)
    return items


@router.get("")
def read_workshops(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: WorkshopStatus = WorkshopStatus.ACTIVE,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    workshops, total = crud.get_workshops(
        db,
        page=page,
        limit=limit,
        category=category,
        search=search,
        date_from=date_from,
        date_to=date_to,
        status=status,
    )
    return {
        "success": True,
        "data": {
            "workshops": _with_booking_flags(db, workshops, current_user),
            "pagination": Pagination.build(page, limit, total),
        },
    }


# Declared before /{workshop_id} so the literal path wins
@router.get("/categories/list")
def read_categories(db: Session = Depends(get_db)):
    return {"success": True, "data": {"categories": crud.get_categories(db)}}


@router.get("/{workshop_id}")
def read_workshop(
    workshop_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    workshop = crud.get_workshop(db, workshop_id)
    if workshop is None:
        raise HTTPException(status_code=404, detail="Workshop not found")
    [item] = _with_booking_flags(db, [workshop], current_user)
    return {"success": True, "data": {"workshop": item}}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_workshop(
    workshop: WorkshopCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    try:
        created = crud.create_workshop(db, workshop, created_by=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "success": True,
        "message": "Workshop created successfully",
        "data": {"workshop": WorkshopResponse.model_validate(created)},
    }


@router.put("/{workshop_id}")
def update_workshop(
    workshop_id: int,
    workshop: WorkshopUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    try:
        updated = crud.update_workshop(db, workshop_id, workshop)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if updated is None:
        raise HTTPException(status_code=404, detail="Workshop not found")
    return {
        "success": True,
        "message": "Workshop updated successfully",
        "data": {"workshop": WorkshopResponse.model_validate(updated)},
    }


@router.delete("/{workshop_id}")
def delete_workshop(
    workshop_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    try:
        deleted = crud.delete_workshop(db, workshop_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Workshop not found")
    return {"success": True, "message": "Workshop deleted successfully"}
