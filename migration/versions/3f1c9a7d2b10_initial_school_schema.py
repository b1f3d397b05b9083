"""initial school schema

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-18 10:12:44.301512

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = (
    'userrole', 'gender', 'languagecode', 'trainerstatus', 'bookingstatus', 'sessionstatus',
    'planprogressstatus', 'changerequeststatus', 'plancategory',
)


def upgrade():
    op.create_table(
        'users',
        sa.Column('uid', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('gender', sa.Enum('male', 'female', name='gender'), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('role', sa.Enum('admin', 'trainer', 'trainee', name='userrole'), nullable=False),
        sa.Column('language', sa.Enum('en', 'ar', name='languagecode'), nullable=False),
        sa.Column('avatar', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('uid'),
    )
    op.create_index(op.f('ix_users_uid'), 'users', ['uid'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name_ar', sa.String(), nullable=False),
        sa.Column('name_en', sa.String(), nullable=False),
        sa.Column('description_ar', sa.String(), nullable=False),
        sa.Column('description_en', sa.String(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('number_of_sessions', sa.Integer(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('features', sa.JSON(), nullable=True),
        sa.Column('category', sa.Enum('beginner', 'intermediate', 'advanced', 'specialist', name='plancategory'), nullable=False),
        sa.Column('image', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_plans_id'), 'plans', ['id'], unique=False)

    op.create_table(
        'trainers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_uid', sa.String(), nullable=False),
        sa.Column('status', sa.Enum('pending', 'active', 'rejected', name='trainerstatus'), nullable=False),
        sa.Column('has_vehicle', sa.Boolean(), nullable=False),
        sa.Column('vehicle_type', sa.String(), nullable=True),
        sa.Column('vehicle_model', sa.String(), nullable=True),
        sa.Column('vehicle_year', sa.Integer(), nullable=True),
        sa.Column('rating', sa.Float(), nullable=False),
        sa.Column('total_reviews', sa.Integer(), nullable=False),
        sa.Column('specializations', sa.JSON(), nullable=True),
        sa.Column('availability', sa.JSON(), nullable=True),
        sa.Column('profile_image', sa.String(), nullable=True),
        sa.Column('vehicle_image', sa.String(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_uid'], ['users.uid']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_uid'),
    )
    op.create_index(op.f('ix_trainers_id'), 'trainers', ['id'], unique=False)

    op.create_table(
        'trainees',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_uid', sa.String(), nullable=False),
        sa.Column('assigned_trainer_id', sa.Integer(), nullable=True),
        sa.Column('preferred_language', postgresql.ENUM('en', 'ar', name='languagecode', create_type=False), nullable=False),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['assigned_trainer_id'], ['trainers.id']),
        sa.ForeignKeyConstraint(['user_uid'], ['users.uid']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_uid'),
    )
    op.create_index(op.f('ix_trainees_id'), 'trainees', ['id'], unique=False)

    op.create_table(
        'trainer_trainee_mapping',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trainer_id', sa.Integer(), nullable=False),
        sa.Column('trainee_id', sa.Integer(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['trainee_id'], ['trainees.id']),
        sa.ForeignKeyConstraint(['trainer_id'], ['trainers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('trainer_id', 'trainee_id', name='uq_trainer_trainee'),
    )
    op.create_index(op.f('ix_trainer_trainee_mapping_id'), 'trainer_trainee_mapping', ['id'], unique=False)

    op.create_table(
        'trainee_plan_progress',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trainee_id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('completed_sessions', sa.Integer(), nullable=False),
        sa.Column('total_sessions', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('status', sa.Enum('active', 'completed', 'cancelled', name='planprogressstatus'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id']),
        sa.ForeignKeyConstraint(['trainee_id'], ['trainees.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_trainee_plan_progress_id'), 'trainee_plan_progress', ['id'], unique=False)

    op.create_table(
        'trainee_trainer_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trainee_id', sa.Integer(), nullable=False),
        sa.Column('trainer_id', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(), nullable=True),
        sa.Column('date', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['trainee_id'], ['trainees.id']),
        sa.ForeignKeyConstraint(['trainer_id'], ['trainers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_trainee_trainer_history_id'), 'trainee_trainer_history', ['id'], unique=False)

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trainee_id', sa.Integer(), nullable=False),
        sa.Column('trainer_id', sa.Integer(), nullable=True),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('preferred_start_date', sa.DateTime(), nullable=False),
        sa.Column('preferred_times', sa.JSON(), nullable=True),
        sa.Column('status', sa.Enum('pending', 'confirmed', 'completed', 'cancelled', name='bookingstatus'), nullable=False),
        sa.Column('total_price', sa.Float(), nullable=False),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('session_ids', sa.JSON(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id']),
        sa.ForeignKeyConstraint(['trainee_id'], ['trainees.id']),
        sa.ForeignKeyConstraint(['trainer_id'], ['trainers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_bookings_id'), 'bookings', ['id'], unique=False)
    op.create_index(op.f('ix_bookings_trainee_id'), 'bookings', ['trainee_id'], unique=False)

    op.create_table(
        'trainer_change_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('requested', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=True),
        sa.Column('status', sa.Enum('pending', 'approved', 'rejected', name='changerequeststatus'), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id'),
    )
    op.create_index(op.f('ix_trainer_change_requests_id'), 'trainer_change_requests', ['id'], unique=False)

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('trainee_id', sa.Integer(), nullable=False),
        sa.Column('trainer_id', sa.Integer(), nullable=True),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('scheduled_date', sa.DateTime(), nullable=False),
        sa.Column('start_time', sa.String(), nullable=False),
        sa.Column('end_time', sa.String(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('scheduled', 'in_progress', 'completed', 'cancelled', 'rescheduled', name='sessionstatus'), nullable=False),
        sa.Column('actual_start_time', sa.DateTime(), nullable=True),
        sa.Column('actual_end_time', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('feedback_rating', sa.Integer(), nullable=True),
        sa.Column('feedback_comment', sa.String(), nullable=True),
        sa.Column('feedback_date', sa.DateTime(), nullable=True),
        sa.Column('is_rescheduled', sa.Boolean(), nullable=False),
        sa.Column('previous_date', sa.DateTime(), nullable=True),
        sa.Column('previous_start_time', sa.String(), nullable=True),
        sa.Column('previous_end_time', sa.String(), nullable=True),
        sa.Column('session_order', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id']),
        sa.ForeignKeyConstraint(['trainee_id'], ['trainees.id']),
        sa.ForeignKeyConstraint(['trainer_id'], ['trainers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_sessions_id'), 'sessions', ['id'], unique=False)
    op.create_index(op.f('ix_sessions_booking_id'), 'sessions', ['booking_id'], unique=False)
    op.create_index(op.f('ix_sessions_trainee_id'), 'sessions', ['trainee_id'], unique=False)
    op.create_index(op.f('ix_sessions_trainer_id'), 'sessions', ['trainer_id'], unique=False)


def downgrade():
    for table in (
        'sessions', 'trainer_change_requests', 'bookings', 'trainee_trainer_history',
        'trainee_plan_progress', 'trainer_trainee_mapping', 'trainees', 'trainers', 'plans', 'users',
    ):
        op.drop_table(table)
    for name in ENUMS:
        op.execute(f"DROP TYPE IF EXISTS {name}")
