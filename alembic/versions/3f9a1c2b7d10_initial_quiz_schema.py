"""initial quiz schema

Revision ID: 3f9a1c2b7d10
Revises:
Create Date: 2026-10-18 09:12:40.512306

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('SUPER_ADMIN', 'GLOBAL_CONTENT_CREATOR', 'ADMIN', 'TEACHER', 'STUDENT', name='userrole')
difficulty_level = sa.Enum('EASY', 'MEDIUM', 'HARD', name='difficultylevel')


def _base_columns():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
    ]


def _base_indexes(table: str):
    op.create_index(f'ix_{table}_id', table, ['id'])
    op.create_index(f'ix_{table}_created_at', table, ['created_at'])
    op.create_index(f'ix_{table}_is_deleted', table, ['is_deleted'])


def upgrade() -> None:
    op.create_table(
        'institutions',
        *_base_columns(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('approved', sa.Boolean(), nullable=False),
        sa.Column('admin_id', sa.Uuid(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', 'address', name='uq_institution_name_address'),
    )
    _base_indexes('institutions')
    op.create_index('ix_institutions_name', 'institutions', ['name'])
    op.create_index('ix_institutions_admin_id', 'institutions', ['admin_id'])
    op.create_index('idx_institution_approved', 'institutions', ['approved', 'is_deleted'])

    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('phone_number', sa.String(length=20), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('institution_id', sa.Uuid(), nullable=True),
        sa.Column('approved', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['institution_id'], ['institutions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    _base_indexes('users')
    op.create_index('ix_users_phone_number', 'users', ['phone_number'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_institution_id', 'users', ['institution_id'])
    op.create_index('idx_user_institution_role', 'users', ['institution_id', 'role'])

    op.create_table(
        'grades',
        *_base_columns(),
        sa.Column('institution_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.ForeignKeyConstraint(['institution_id'], ['institutions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('institution_id', 'name', name='uq_grade_institution_name'),
    )
    _base_indexes('grades')
    op.create_index('ix_grades_institution_id', 'grades', ['institution_id'])

    op.create_table(
        'subjects',
        *_base_columns(),
        sa.Column('grade_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.ForeignKeyConstraint(['grade_id'], ['grades.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('grade_id', 'name', name='uq_subject_grade_name'),
    )
    _base_indexes('subjects')
    op.create_index('ix_subjects_grade_id', 'subjects', ['grade_id'])

    op.create_table(
        'quizzes',
        *_base_columns(),
        sa.Column('institution_id', sa.Uuid(), nullable=True),
        sa.Column('subject_id', sa.Uuid(), nullable=False),
        sa.Column('created_by_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_mins', sa.Integer(), nullable=False),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_completed', sa.Boolean(), nullable=False),
        sa.CheckConstraint('start_time < end_time', name='ck_quiz_window'),
        sa.ForeignKeyConstraint(['institution_id'], ['institutions.id']),
        sa.ForeignKeyConstraint(['subject_id'], ['subjects.id']),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('quizzes')
    op.create_index('ix_quizzes_institution_id', 'quizzes', ['institution_id'])
    op.create_index('ix_quizzes_subject_id', 'quizzes', ['subject_id'])
    op.create_index('ix_quizzes_created_by_id', 'quizzes', ['created_by_id'])
    op.create_index('idx_quiz_window', 'quizzes', ['start_time', 'end_time'])

    op.create_table(
        'questions',
        *_base_columns(),
        sa.Column('quiz_id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.Integer(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('options', sa.JSON(), nullable=False),
        sa.Column('answer', sa.String(length=500), nullable=False),
        sa.Column('difficulty', difficulty_level, nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.CheckConstraint('points >= 1', name='ck_question_points_positive'),
        sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('questions')
    op.create_index('ix_questions_quiz_id', 'questions', ['quiz_id'])

    op.create_table(
        'quiz_attempts',
        *_base_columns(),
        sa.Column('quiz_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('institution_id', sa.Uuid(), nullable=True),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('question_snapshot', sa.JSON(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('max_score', sa.Integer(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('time_spent_minutes', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id']),
        sa.ForeignKeyConstraint(['student_id'], ['users.id']),
        sa.ForeignKeyConstraint(['institution_id'], ['institutions.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('quiz_attempts')
    op.create_index('ix_quiz_attempts_quiz_id', 'quiz_attempts', ['quiz_id'])
    op.create_index('ix_quiz_attempts_student_id', 'quiz_attempts', ['student_id'])
    op.create_index('ix_quiz_attempts_institution_id', 'quiz_attempts', ['institution_id'])
    op.create_index('idx_attempt_quiz_completed', 'quiz_attempts', ['quiz_id', 'completed'])
    op.create_index(
        'uq_quiz_attempt_active',
        'quiz_attempts',
        ['quiz_id', 'student_id'],
        unique=True,
        postgresql_where=sa.text('completed = false'),
        sqlite_where=sa.text('completed = 0'),
    )


def downgrade() -> None:
    op.drop_table('quiz_attempts')
    op.drop_table('questions')
    op.drop_table('quizzes')
    op.drop_table('subjects')
    op.drop_table('grades')
    op.drop_table('users')
    op.drop_table('institutions')
    difficulty_level.drop(op.get_bind(), checkfirst=True)
    user_role.drop(op.get_bind(), checkfirst=True)
