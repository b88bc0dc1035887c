"""defense workflow, honoraria and student record tables

Revision ID: 20261019_0001
Revises: 
Create Date: 2026-10-19 00:01:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261019_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=180), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='student'),
        sa.Column('program', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'adviser_coordinators',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('adviser_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('coordinator_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('adviser_id', 'coordinator_id', name='uq_adviser_coordinators_pair'),
    )
    op.create_index('ix_adviser_coordinators_adviser_id', 'adviser_coordinators', ['adviser_id'])
    op.create_index('ix_adviser_coordinators_coordinator_id', 'adviser_coordinators', ['coordinator_id'])

    op.create_table(
        'adviser_students',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('adviser_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('requested_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('adviser_id', 'student_id', name='uq_adviser_students_pair'),
    )
    op.create_index('ix_adviser_students_adviser_id', 'adviser_students', ['adviser_id'])
    op.create_index('ix_adviser_students_student_id', 'adviser_students', ['student_id'])

    op.create_table(
        'panelists',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=180), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_panelists_name', 'panelists', ['name'])

    op.create_table(
        'defense_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('submitted_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('first_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('middle_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('school_id', sa.String(length=40), nullable=False),
        sa.Column('program', sa.String(length=255), nullable=False),
        sa.Column('thesis_title', sa.Text(), nullable=False, server_default=''),
        sa.Column('defense_type', sa.String(length=20), nullable=False),
        sa.Column('defense_mode', sa.String(length=20), nullable=False, server_default='face-to-face'),
        sa.Column('defense_venue', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('workflow_state', sa.String(length=30), nullable=False, server_default='pending'),
        sa.Column('adviser_status', sa.String(length=20), nullable=False, server_default='Pending'),
        sa.Column('coordinator_status', sa.String(length=20), nullable=False, server_default='Pending'),
        sa.Column('adviser_comments', sa.Text(), nullable=False, server_default=''),
        sa.Column('coordinator_comments', sa.Text(), nullable=False, server_default=''),
        sa.Column('defense_adviser', sa.String(length=180), nullable=False, server_default=''),
        sa.Column('adviser_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('coordinator_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('defense_chairperson', sa.String(length=180), nullable=False, server_default=''),
        sa.Column('defense_panelist1', sa.String(length=180), nullable=False, server_default=''),
        sa.Column('defense_panelist2', sa.String(length=180), nullable=False, server_default=''),
        sa.Column('defense_panelist3', sa.String(length=180), nullable=False, server_default=''),
        sa.Column('defense_panelist4', sa.String(length=180), nullable=False, server_default=''),
        sa.Column('scheduled_date', sa.Date(), nullable=True),
        sa.Column('scheduled_time', sa.String(length=10), nullable=False, server_default=''),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('or_number', sa.String(length=60), nullable=False, server_default=''),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.Column('last_status_updated_at', sa.DateTime(), nullable=True),
        sa.Column('last_status_updated_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_defense_requests_id', 'defense_requests', ['id'])
    op.create_index('ix_defense_requests_submitted_by', 'defense_requests', ['submitted_by'])
    op.create_index('ix_defense_requests_school_id', 'defense_requests', ['school_id'])
    op.create_index('ix_defense_requests_workflow_state', 'defense_requests', ['workflow_state'])
    op.create_index('ix_defense_requests_adviser_user_id', 'defense_requests', ['adviser_user_id'])
    op.create_index('ix_defense_requests_coordinator_user_id', 'defense_requests', ['coordinator_user_id'])
    op.create_index('ix_defense_requests_scheduled_date', 'defense_requests', ['scheduled_date'])
    op.create_index('ix_defense_requests_state_type', 'defense_requests', ['workflow_state', 'defense_type'])

    op.create_table(
        'defense_workflow_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('defense_request_id', sa.Integer(), sa.ForeignKey('defense_requests.id'), nullable=False),
        sa.Column('action', sa.String(length=40), nullable=False),
        sa.Column('from_state', sa.String(length=30), nullable=False, server_default=''),
        sa.Column('to_state', sa.String(length=30), nullable=False, server_default=''),
        sa.Column('comment', sa.Text(), nullable=False, server_default=''),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_defense_workflow_entries_defense_request_id', 'defense_workflow_entries', ['defense_request_id'])
    op.create_index('ix_defense_workflow_entries_created_at', 'defense_workflow_entries', ['created_at'])

    op.create_table(
        'aa_payment_verifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('defense_request_id', sa.Integer(), sa.ForeignKey('defense_requests.id'), nullable=False),
        sa.Column('assigned_to', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='pending'),
        sa.Column('remarks', sa.Text(), nullable=False, server_default=''),
        sa.Column('honoraria_materialized_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('defense_request_id', name='uq_aa_payment_verifications_defense_request'),
    )
    op.create_index('ix_aa_payment_verifications_status', 'aa_payment_verifications', ['status'])

    op.create_table(
        'payment_rates',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('program_level', sa.String(length=20), nullable=False),
        sa.Column('defense_type', sa.String(length=20), nullable=False),
        sa.Column('role', sa.String(length=40), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('program_level', 'defense_type', 'role', name='uq_payment_rates_key'),
    )

    op.create_table(
        'honorarium_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('defense_request_id', sa.Integer(), sa.ForeignKey('defense_requests.id'), nullable=False),
        sa.Column('panelist_id', sa.Integer(), nullable=True),
        sa.Column('panelist_name', sa.String(length=180), nullable=False),
        sa.Column('role', sa.String(length=40), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('defense_date', sa.Date(), nullable=True),
        sa.Column('student_name', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('program', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('defense_type', sa.String(length=20), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('defense_request_id', 'role', name='uq_honorarium_payments_request_role'),
    )
    op.create_index('ix_honorarium_payments_defense_request_id', 'honorarium_payments', ['defense_request_id'])
    op.create_index('ix_honorarium_payments_panelist_id', 'honorarium_payments', ['panelist_id'])

    op.create_table(
        'program_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False, unique=True),
        sa.Column('program', sa.String(length=60), nullable=False, server_default=''),
        sa.Column('category', sa.String(length=20), nullable=False, server_default='Masters'),
        sa.Column('program_level', sa.String(length=20), nullable=False, server_default='Masteral'),
        sa.Column('date_edited', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'student_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.String(length=40), nullable=False),
        sa.Column('defense_request_id', sa.Integer(), sa.ForeignKey('defense_requests.id'), nullable=False),
        sa.Column('program_record_id', sa.Integer(), sa.ForeignKey('program_records.id'), nullable=False),
        sa.Column('first_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('middle_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('program', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('school_year', sa.String(length=9), nullable=False, server_default=''),
        sa.Column('defense_date', sa.Date(), nullable=True),
        sa.Column('defense_type', sa.String(length=20), nullable=False, server_default=''),
        sa.Column('or_number', sa.String(length=60), nullable=False, server_default=''),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('defense_request_id', name='uq_student_records_defense_request'),
    )
    op.create_index('ix_student_records_student_id', 'student_records', ['student_id'])
    op.create_index('ix_student_records_program_record_id', 'student_records', ['program_record_id'])
    op.create_index('ix_student_records_student_defense', 'student_records', ['student_id', 'defense_request_id'])

    op.create_table(
        'panelist_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('program_record_id', sa.Integer(), sa.ForeignKey('program_records.id'), nullable=False),
        sa.Column('name', sa.String(length=180), nullable=False),
        sa.Column('received_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('name', 'program_record_id', name='uq_panelist_records_name_program'),
    )

    op.create_table(
        'panelist_student_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('panelist_record_id', sa.Integer(), sa.ForeignKey('panelist_records.id'), nullable=False),
        sa.Column('student_record_id', sa.Integer(), sa.ForeignKey('student_records.id'), nullable=False),
        sa.Column('role', sa.String(length=40), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('panelist_record_id', 'student_record_id', name='uq_panelist_student_records_pair'),
    )

    op.create_table(
        'payment_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_record_id', sa.Integer(), sa.ForeignKey('student_records.id'), nullable=False),
        sa.Column('panelist_record_id', sa.Integer(), sa.ForeignKey('panelist_records.id'), nullable=False),
        sa.Column('defense_request_id', sa.Integer(), sa.ForeignKey('defense_requests.id'), nullable=False),
        sa.Column('school_year', sa.String(length=9), nullable=False, server_default=''),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('defense_status', sa.String(length=20), nullable=False, server_default='completed'),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            'student_record_id',
            'panelist_record_id',
            'defense_request_id',
            name='uq_payment_records_student_panelist_request',
        ),
    )


def downgrade() -> None:
    for table in (
        'payment_records',
        'panelist_student_records',
        'panelist_records',
        'student_records',
        'program_records',
        'honorarium_payments',
        'payment_rates',
        'aa_payment_verifications',
        'defense_workflow_entries',
        'defense_requests',
        'panelists',
        'adviser_students',
        'adviser_coordinators',
        'users',
    ):
        op.drop_table(table)
