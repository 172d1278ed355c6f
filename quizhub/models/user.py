# quizhub/models/user.py
import enum
from sqlalchemy import Column, String, Boolean, Enum, ForeignKey, Uuid, Index
from sqlalchemy.orm import relationship
from .base import Base

class UserRole(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    GLOBAL_CONTENT_CREATOR = "GLOBAL_CONTENT_CREATOR"
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"

class User(Base):
    __tablename__ = "users"

    name = Column(String(100), nullable=False)
    phone_number = Column(String(20), unique=True, nullable=False, index=True)
    email = Column(String(254), unique=True, nullable=True)

    role = Column(Enum(UserRole), nullable=False, index=True)
    institution_id = Column(Uuid(as_uuid=True), ForeignKey("institutions.id"), nullable=True, index=True)
    approved = Column(Boolean, default=False, nullable=False)

    institution = relationship("Institution", back_populates="users")

    __table_args__ = (
        Index('idx_user_institution_role', 'institution_id', 'role'),
    )
