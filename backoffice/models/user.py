"""
User Model - login accounts for staff, applicants and tenants
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import String, DateTime, Integer, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.db.base import Base


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"          # registered applicant
    VILLAGER = "VILLAGER"  # approved tenant with a live lease


class User(Base):
    """
    Login account.

    Tenants are linked to accounts by email, not by foreign key: an applicant
    may register before a Tenant row exists, and approval provisions the
    account when it does not.
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(254), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role"), default=UserRole.USER, nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
