from datetime import datetime, timezone

from sqlalchemy import Column, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Integer, String

from fintrack.data.base import Base
from fintrack.domain.models.user import Role, User


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserORM(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=False)
    role = Column(
        SAEnum(Role, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.ADMINISTRATOR,
    )
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


def user_to_domain(user_orm: UserORM) -> User:
    return User(
        id=user_orm.id,
        email=user_orm.email,
        name=user_orm.name,
        role=user_orm.role,
        created_at=user_orm.created_at,
        updated_at=user_orm.updated_at,
    )


def get_user(db, user_id: int):
    return db.query(UserORM).filter(UserORM.id == user_id).first()


def get_user_by_email(db, email: str):
    return db.query(UserORM).filter(UserORM.email == email).first()


def list_users(db):
    return db.query(UserORM).order_by(UserORM.created_at.desc(), UserORM.id.desc()).all()


def count_users(db) -> int:
    return db.query(UserORM).count()


def create_user(db, email: str, hashed_password: str, name: str, role: Role):
    db_user = UserORM(email=email, hashed_password=hashed_password, name=name, role=role)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def delete_user(db, user_id: int):
    user = db.query(UserORM).filter(UserORM.id == user_id).first()
    if user:
        db.delete(user)
        db.commit()
        return True
    return False


def update_role(db, user_id: int, role: Role):
    user = db.query(UserORM).filter(UserORM.id == user_id).first()
    if user:
        user.role = role
        db.commit()
        db.refresh(user)
        return user
    return None


def update_profile(db, user_id: int, name: str, email: str):
    user = db.query(UserORM).filter(UserORM.id == user_id).first()
    if user:
        user.name = name
        user.email = email
        db.commit()
        db.refresh(user)
        return user
    return None


def update_password(db, user_id: int, new_hashed_password: str):
    user = db.query(UserORM).filter(UserORM.id == user_id).first()
    if user:
        user.hashed_password = new_hashed_password
        db.commit()
        db.refresh(user)
        return user
    return None
