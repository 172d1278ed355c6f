# quizhub/models/shared/institution.py
"""Institution (tenant) model definition."""
from sqlalchemy import Column, String, Boolean, Uuid, UniqueConstraint, Index
from sqlalchemy.orm import relationship, validates
from ..base import Base

class Institution(Base):
    __tablename__ = "institutions"

    name = Column(String(200), nullable=False, index=True)
    address = Column(String(500), nullable=True)

    # New institutions wait for super admin approval
    approved = Column(Boolean, default=False, nullable=False)

    # Kept without a foreign key, users already point back at institutions
    admin_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    grades = relationship("Grade", back_populates="institution", cascade="all, delete-orphan")
    users = relationship("User", back_populates="institution", lazy="raise")

    @validates('name')
    def validate_name(self, key, value):
        if not value or len(value.strip()) < 2:
            raise ValueError("Institution name must be at least 2 characters long")
        return value.strip()

    __table_args__ = (
        UniqueConstraint('name', 'address', name='uq_institution_name_address'),
        Index('idx_institution_approved', 'approved', 'is_deleted'),
    )
