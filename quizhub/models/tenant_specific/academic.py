# quizhub/models/tenant_specific/academic.py
from sqlalchemy import Column, String, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from ..base import Base

class Grade(Base):
    __tablename__ = "grades"

    institution_id = Column(Uuid(as_uuid=True), ForeignKey("institutions.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)

    institution = relationship("Institution", back_populates="grades")
    subjects = relationship("Subject", back_populates="grade", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('institution_id', 'name', name='uq_grade_institution_name'),
    )

class Subject(Base):
    __tablename__ = "subjects"

    grade_id = Column(Uuid(as_uuid=True), ForeignKey("grades.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)

    grade = relationship("Grade", back_populates="subjects", lazy="joined")
    quizzes = relationship("Quiz", back_populates="subject", lazy="raise")

    __table_args__ = (
        UniqueConstraint('grade_id', 'name', name='uq_subject_grade_name'),
    )
