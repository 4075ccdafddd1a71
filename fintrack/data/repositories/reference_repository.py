from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from fintrack.data.base import Base

DEFAULT_CATEGORY_COLOR = "#3B82F6"


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DivisionORM(Base):
    __tablename__ = "divisions"
    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class CategoryORM(Base):
    __tablename__ = "categories"
    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String, nullable=False, default=DEFAULT_CATEGORY_COLOR)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    subcategories = relationship(
        "SubcategoryORM",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="SubcategoryORM.name",
    )


class SubcategoryORM(Base):
    __tablename__ = "subcategories"
    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_subcategory_name"),
    )
    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    category = relationship("CategoryORM", back_populates="subcategories")


class PicORM(Base):
    __tablename__ = "pics"
    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, unique=True, nullable=False)
    email = Column(String, nullable=True)
    position = Column(String, nullable=True)
    division_id = Column(Integer, ForeignKey("divisions.id"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    division = relationship("DivisionORM")


def get_by_id(db, model, entity_id: int):
    return db.query(model).filter(model.id == entity_id).first()


def list_rows(db, model, filters=None):
    query = db.query(model)
    if filters:
        query = query.filter(*filters)
    return query.order_by(model.name.asc(), model.id.asc()).all()


def is_referenced(db, column, value) -> bool:
    """True when at least one row has `column == value`."""
    model = column.class_
    return db.query(model.id).filter(column == value).first() is not None


def is_referenced_by_any(db, column, values) -> bool:
    values = list(values)
    if not values:
        return False
    model = column.class_
    return db.query(model.id).filter(column.in_(values)).first() is not None
