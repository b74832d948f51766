"""Create class slot, absence and makeup request tables

Revision ID: m001_create_makeup_tables
Revises:
Create Date: 2026-10-18

This migration creates the tables for makeup lesson booking:
- class_slots: Lessons and their makeup capacity ledger
- absence_notices: Reported absences and their makeup deadline
- makeup_requests: Bookings and waitlist entries (FIFO by created_at)
- global_settings: Singleton booking rules
- holidays: Closure days hidden from search
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'm001_create_makeup_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create class_slots table
    op.create_table(
        'class_slots',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('lesson_start_at', sa.DateTime(), nullable=False),
        sa.Column('course_label', sa.String(120), nullable=False),
        sa.Column('class_band', sa.String(20), nullable=False),

        # Regular enrolment
        sa.Column('capacity_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('capacity_current', sa.Integer(), nullable=False, server_default='0'),

        # Makeup ledger
        sa.Column('makeup_allowed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('makeup_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('waitlist_count', sa.Integer(), nullable=False, server_default='0'),

        # Timestamps (school-local)
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),

        sa.CheckConstraint('makeup_used >= 0', name='check_makeup_used_positive'),
        sa.CheckConstraint('waitlist_count >= 0', name='check_waitlist_count_positive'),
        sa.CheckConstraint(
            "class_band IN ('BEGINNER', 'INTERMEDIATE', 'ADVANCED')",
            name='check_slot_class_band',
        ),
    )
    op.create_index('ix_class_slots_date', 'class_slots', ['date'])
    op.create_index('ix_class_slots_lesson_start_at', 'class_slots', ['lesson_start_at'])
    op.create_index('ix_class_slots_class_band', 'class_slots', ['class_band'])
    op.create_index('ix_class_slots_band_date', 'class_slots', ['class_band', 'date'])

    # Create absence_notices table
    op.create_table(
        'absence_notices',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('child_name', sa.String(120), nullable=False),
        sa.Column('declared_class_band', sa.String(20), nullable=False),
        sa.Column('contact_email', sa.String(320), nullable=True),
        sa.Column('absent_date', sa.Date(), nullable=False),
        sa.Column(
            'original_slot_id', sa.String(),
            sa.ForeignKey('class_slots.id', ondelete='RESTRICT'), nullable=False,
        ),
        sa.Column('resume_token', sa.String(128), nullable=False, unique=True),
        sa.Column('makeup_deadline', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='ABSENT_LOGGED'),
        sa.Column(
            'makeup_slot_id', sa.String(),
            sa.ForeignKey('class_slots.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('makeup_allowance_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),

        sa.UniqueConstraint('child_name', 'original_slot_id', name='unique_child_original_slot'),
    )
    op.create_index('ix_absence_notices_original_slot_id', 'absence_notices', ['original_slot_id'])
    op.create_index('ix_absence_notices_makeup_deadline', 'absence_notices', ['makeup_deadline'])

    # Create makeup_requests table
    op.create_table(
        'makeup_requests',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('child_name', sa.String(120), nullable=False),
        sa.Column('declared_class_band', sa.String(20), nullable=False),
        sa.Column('absent_date', sa.Date(), nullable=False),
        sa.Column(
            'to_slot_id', sa.String(),
            sa.ForeignKey('class_slots.id', ondelete='RESTRICT'), nullable=False,
        ),
        sa.Column('to_slot_start_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('contact_email', sa.String(320), nullable=True),
        sa.Column('decline_token', sa.String(128), nullable=True, unique=True),
        sa.Column(
            'absence_notice_id', sa.String(),
            sa.ForeignKey('absence_notices.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
    )

    op.create_check_constraint(
        'check_request_status',
        'makeup_requests',
        "status IN ('WAITING', 'CONFIRMED', 'DECLINED', 'EXPIRED')"
    )

    # FIFO promotion and expiry lookups
    op.create_index('ix_makeup_requests_to_slot_id', 'makeup_requests', ['to_slot_id'])
    op.create_index('ix_makeup_requests_to_slot_start_at', 'makeup_requests', ['to_slot_start_at'])
    op.create_index('ix_makeup_requests_status', 'makeup_requests', ['status'])
    op.create_index('ix_makeup_requests_absence_notice_id', 'makeup_requests', ['absence_notice_id'])
    op.create_index(
        'ix_makeup_requests_slot_status_created',
        'makeup_requests',
        ['to_slot_id', 'status', 'created_at'],
    )

    # Create global_settings table
    op.create_table(
        'global_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('makeup_window_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('cutoff_time', sa.String(5), nullable=False, server_default='12:00'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # Create holidays table
    op.create_table(
        'holidays',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False, unique=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('holidays')
    op.drop_table('global_settings')

    op.drop_index('ix_makeup_requests_slot_status_created', table_name='makeup_requests')
    op.drop_index('ix_makeup_requests_absence_notice_id', table_name='makeup_requests')
    op.drop_index('ix_makeup_requests_status', table_name='makeup_requests')
    op.drop_index('ix_makeup_requests_to_slot_start_at', table_name='makeup_requests')
    op.drop_index('ix_makeup_requests_to_slot_id', table_name='makeup_requests')
    op.drop_constraint('check_request_status', 'makeup_requests', type_='check')
    op.drop_table('makeup_requests')

    op.drop_index('ix_absence_notices_makeup_deadline', table_name='absence_notices')
    op.drop_index('ix_absence_notices_original_slot_id', table_name='absence_notices')
    op.drop_table('absence_notices')

    op.drop_index('ix_class_slots_band_date', table_name='class_slots')
    op.drop_index('ix_class_slots_class_band', table_name='class_slots')
    op.drop_index('ix_class_slots_lesson_start_at', table_name='class_slots')
    op.drop_index('ix_class_slots_date', table_name='class_slots')
    op.drop_table('class_slots')
