# rollcall/models/user.py
from enum import Enum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String
from rollcall.db.base import Base

class UserRole(str, Enum):
    student = "student"
    instructor = "instructor"
    admin = "admin"

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120))
    email: Mapped[str] = mapped_column(String(160), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default=UserRole.student.value)
    status: Mapped[str] = mapped_column(String(20), default="active")
