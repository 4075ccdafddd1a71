from typing import Optional, Type

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fintrack.data.base import get_db
from fintrack.domain.models.user import Identity
from fintrack.domain.services.reference_service import (
    CATEGORY,
    DIVISION,
    PIC,
    SUBCATEGORY,
    DeleteOutcome,
    EntitySpec,
    create_entity,
    delete_entity,
    get_entity,
    list_entities,
    serialize,
    update_entity,
)
from fintrack.presentation.guard import current_identity


class DivisionRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class CategoryRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None


class SubcategoryRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None


class PicRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    position: Optional[str] = None
    division_id: Optional[int] = None
    is_active: Optional[bool] = None


def build_reference_router(
    spec: EntitySpec, prefix: str, request_model: Type[BaseModel]
) -> APIRouter:
    """CRUD endpoints for one reference entity; all share the same contract."""
    router = APIRouter(prefix=prefix, tags=[spec.key])
    parent_field = spec.parent.field if spec.parent else None

    @router.get("")
    def list_endpoint(
        parent_id: Optional[int] = Query(None, alias=parent_field or "parent_id"),
        include_inactive: bool = False,
        identity: Identity = Depends(current_identity),
        db: Session = Depends(get_db),
    ):
        rows = list_entities(
            db, spec, parent_id=parent_id, include_inactive=include_inactive
        )
        return [serialize(spec, r) for r in rows]

    @router.post("", status_code=201)
    def create_endpoint(
        req: request_model,
        identity: Identity = Depends(current_identity),
        db: Session = Depends(get_db),
    ):
        row = create_entity(db, spec, req.model_dump(exclude_unset=True))
        return serialize(spec, row)

    @router.get("/{entity_id}")
    def get_endpoint(
        entity_id: int,
        identity: Identity = Depends(current_identity),
        db: Session = Depends(get_db),
    ):
        return serialize(spec, get_entity(db, spec, entity_id))

    @router.put("/{entity_id}")
    def update_endpoint(
        entity_id: int,
        req: request_model,
        identity: Identity = Depends(current_identity),
        db: Session = Depends(get_db),
    ):
        row = update_entity(db, spec, entity_id, req.model_dump(exclude_unset=True))
        return serialize(spec, row)

    @router.delete("/{entity_id}")
    def delete_endpoint(
        entity_id: int,
        identity: Identity = Depends(current_identity),
        db: Session = Depends(get_db),
    ):
        outcome = delete_entity(db, spec, entity_id)
        if outcome == DeleteOutcome.DEACTIVATED:
            message = f"{spec.label} deactivated successfully"
        else:
            message = f"{spec.label} deleted successfully"
        return {"success": True, "message": message, "outcome": outcome.value}

    return router


divisions_router = build_reference_router(DIVISION, "/api/divisions", DivisionRequest)
categories_router = build_reference_router(
    CATEGORY, "/api/categories", CategoryRequest
)
subcategories_router = build_reference_router(
    SUBCATEGORY, "/api/subcategories", SubcategoryRequest
)
pics_router = build_reference_router(PIC, "/api/pics", PicRequest)

routers = [divisions_router, categories_router, subcategories_router, pics_router]
