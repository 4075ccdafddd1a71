"""
Generic CRUD for the reference data invoices point to: divisions, categories,
subcategories and PICs.

Each entity type is described by an ``EntitySpec``. The deletion behaviour is a
``DeletePolicy`` consumed by the single ``delete_entity`` routine:

* REFUSE  - refuse while referenced
* CASCADE - refuse while the entity or one of its children is referenced,
            otherwise delete it together with its children
* SOFT    - deactivate while referenced, hard delete otherwise
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fintrack.data.repositories.invoice_repository import InvoiceORM
from fintrack.data.repositories.reference_repository import (
    DEFAULT_CATEGORY_COLOR,
    CategoryORM,
    DivisionORM,
    PicORM,
    SubcategoryORM,
    get_by_id,
    is_referenced,
    is_referenced_by_any,
    list_rows,
)
from fintrack.domain.errors import (
    NotFoundError,
    ReferencedError,
    ValidationError,
    translate_integrity_error,
)

logger = logging.getLogger(__name__)


class DeletePolicy(Enum):
    REFUSE = "refuse"
    CASCADE = "cascade"
    SOFT = "soft"


class DeleteOutcome(Enum):
    DELETED = "deleted"
    DEACTIVATED = "deactivated"


@dataclass(frozen=True)
class ParentRelation:
    field: str
    spec_key: str


@dataclass(frozen=True)
class ChildRelation:
    spec_key: str
    foreign_key: str


@dataclass(frozen=True)
class EntitySpec:
    key: str
    label: str
    model: Any
    required: Tuple[str, ...]
    optional: Tuple[str, ...] = ()
    defaults: Mapping[str, Any] = field(default_factory=dict)
    parent: Optional[ParentRelation] = None
    # (model column, human label) pairs of rows that block deletion
    referenced_by: Tuple[Tuple[Any, str], ...] = ()
    children: Tuple[ChildRelation, ...] = ()
    delete_policy: DeletePolicy = DeletePolicy.REFUSE
    serializer: Optional[Callable[[Any], Dict[str, Any]]] = None


def _timestamps(row) -> Dict[str, Any]:
    return {
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


def serialize_division(row: DivisionORM) -> Dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        **_timestamps(row),
    }


def serialize_subcategory(row: SubcategoryORM) -> Dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "category_id": row.category_id,
        "category_name": row.category.name if row.category else None,
        **_timestamps(row),
    }


def serialize_category(row: CategoryORM) -> Dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "color": row.color,
        "subcategories": [
            {"id": s.id, "name": s.name, "description": s.description}
            for s in row.subcategories
        ],
        **_timestamps(row),
    }


def serialize_pic(row: PicORM) -> Dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "phone": row.phone,
        "email": row.email,
        "position": row.position,
        "division_id": row.division_id,
        "division_name": row.division.name if row.division else None,
        "is_active": row.is_active,
        **_timestamps(row),
    }


DIVISION = EntitySpec(
    key="division",
    label="Division",
    model=DivisionORM,
    required=("name",),
    optional=("description",),
    referenced_by=(
        (InvoiceORM.division_id, "invoices"),
        (PicORM.division_id, "PICs"),
    ),
    delete_policy=DeletePolicy.REFUSE,
    serializer=serialize_division,
)

SUBCATEGORY = EntitySpec(
    key="subcategory",
    label="Subcategory",
    model=SubcategoryORM,
    required=("name",),
    optional=("description",),
    parent=ParentRelation(field="category_id", spec_key="category"),
    referenced_by=((InvoiceORM.subcategory_id, "invoices"),),
    delete_policy=DeletePolicy.REFUSE,
    serializer=serialize_subcategory,
)

CATEGORY = EntitySpec(
    key="category",
    label="Category",
    model=CategoryORM,
    required=("name",),
    optional=("description", "color"),
    defaults={"color": DEFAULT_CATEGORY_COLOR},
    referenced_by=((InvoiceORM.category_id, "invoices"),),
    children=(ChildRelation(spec_key="subcategory", foreign_key="category_id"),),
    delete_policy=DeletePolicy.CASCADE,
    serializer=serialize_category,
)

PIC = EntitySpec(
    key="pic",
    label="PIC",
    model=PicORM,
    required=("name", "phone"),
    optional=("email", "position", "is_active"),
    defaults={"is_active": True},
    parent=ParentRelation(field="division_id", spec_key="division"),
    referenced_by=((InvoiceORM.pic_id, "invoices"),),
    delete_policy=DeletePolicy.SOFT,
    serializer=serialize_pic,
)

SPECS: Dict[str, EntitySpec] = {
    s.key: s for s in (DIVISION, CATEGORY, SUBCATEGORY, PIC)
}


def serialize(spec: EntitySpec, row) -> Dict[str, Any]:
    return spec.serializer(row)


def _clean_value(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _parse_parent_id(spec: EntitySpec, value) -> int:
    if value is None or value == "":
        raise ValidationError(
            f"{spec.parent.field} is required", {"field": spec.parent.field}
        )
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{spec.parent.field} must be an id", {"field": spec.parent.field}
        )


def _prepare_fields(
    db: Session, spec: EntitySpec, fields: Mapping[str, Any], partial_defaults: bool
) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name in spec.required:
        value = _clean_value(fields.get(name))
        if value is None:
            raise ValidationError(
                f"{spec.label} {name} is required", {"field": name}
            )
        values[name] = value
    for name in spec.optional:
        if name in fields:
            value = _clean_value(fields.get(name))
            if value is None and name in spec.defaults:
                value = spec.defaults[name]
            values[name] = value
        elif partial_defaults and name in spec.defaults:
            values[name] = spec.defaults[name]
        elif partial_defaults:
            values[name] = None
    if spec.parent is not None:
        parent_id = _parse_parent_id(spec, fields.get(spec.parent.field))
        parent_spec = SPECS[spec.parent.spec_key]
        if get_by_id(db, parent_spec.model, parent_id) is None:
            raise ValidationError(
                f"{parent_spec.label} not found", {"field": spec.parent.field}
            )
        values[spec.parent.field] = parent_id
    return values


def _commit(db: Session, spec: EntitySpec) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e, spec.label) from e


def get_entity(db: Session, spec: EntitySpec, entity_id: int):
    row = get_by_id(db, spec.model, entity_id)
    if row is None:
        raise NotFoundError(f"{spec.label} not found")
    return row


def list_entities(
    db: Session,
    spec: EntitySpec,
    parent_id: Optional[int] = None,
    include_inactive: bool = False,
) -> List[Any]:
    filters = []
    if parent_id is not None and spec.parent is not None:
        filters.append(getattr(spec.model, spec.parent.field) == parent_id)
    if spec.delete_policy == DeletePolicy.SOFT and not include_inactive:
        filters.append(spec.model.is_active.is_(True))
    return list_rows(db, spec.model, filters)


def create_entity(db: Session, spec: EntitySpec, fields: Mapping[str, Any]):
    values = _prepare_fields(db, spec, fields, partial_defaults=True)
    row = spec.model(**values)
    db.add(row)
    _commit(db, spec)
    db.refresh(row)
    logger.info("Created %s %s (%s)", spec.label, row.id, row.name)
    return row


def update_entity(
    db: Session, spec: EntitySpec, entity_id: int, fields: Mapping[str, Any]
):
    row = get_entity(db, spec, entity_id)
    values = _prepare_fields(db, spec, fields, partial_defaults=False)
    for name, value in values.items():
        setattr(row, name, value)
    _commit(db, spec)
    db.refresh(row)
    logger.info("Updated %s %s", spec.label, row.id)
    return row


def _blocking_references(
    db: Session, spec: EntitySpec, ids: Sequence[int]
) -> List[str]:
    blocking = []
    for column, what in spec.referenced_by:
        if len(ids) == 1:
            found = is_referenced(db, column, ids[0])
        else:
            found = is_referenced_by_any(db, column, ids)
        if found:
            blocking.append(what)
    for child in spec.children:
        child_spec = SPECS[child.spec_key]
        child_ids = [
            cid
            for (cid,) in db.query(child_spec.model.id).filter(
                getattr(child_spec.model, child.foreign_key).in_(list(ids))
            )
        ]
        if child_ids:
            blocking.extend(
                f"{child_spec.label.lower()} {what}"
                for what in _blocking_references(db, child_spec, child_ids)
            )
    return blocking


def delete_entity(db: Session, spec: EntitySpec, entity_id: int) -> DeleteOutcome:
    row = get_entity(db, spec, entity_id)
    blocking = _blocking_references(db, spec, [entity_id])

    if blocking and spec.delete_policy == DeletePolicy.SOFT:
        row.is_active = False
        _commit(db, spec)
        logger.info("Deactivated referenced %s %s", spec.label, entity_id)
        return DeleteOutcome.DEACTIVATED

    if blocking:
        raise ReferencedError(
            f"Cannot delete {spec.label.lower()} that is still in use",
            {"referenced_by": blocking},
        )

    # CASCADE children go with the row through the ORM delete-orphan cascade.
    db.delete(row)
    _commit(db, spec)
    logger.info("Deleted %s %s", spec.label, entity_id)
    return DeleteOutcome.DELETED
