"""
Esquema inicial: gimnasios, planes, alumnos, asistencias y snapshots.

Revision ID: 0001_initial_schema
Create Date: 2026-10-19 10:00:00.000000
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

subscription_status_enum = sa.Enum('active', 'cancelled', 'expired', name='subscription_status_enum')
membership_status_enum = sa.Enum('active', 'inactive', 'expired', name='membership_status_enum')
check_in_method_enum = sa.Enum('dni', 'qr', 'camera', name='check_in_method_enum')


def upgrade():
    # 1. Planes de suscripción de la plataforma
    op.create_table(
        'subscription_plans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_students', sa.Integer(), nullable=True),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_subscription_plans_id', 'subscription_plans', ['id'])

    # 2. Gimnasios (tenants)
    op.create_table(
        'gyms',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('email', sa.String(100), nullable=True),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='America/Argentina/Buenos_Aires'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ARS'),
        sa.Column('subscription_plan_id', sa.Integer(), sa.ForeignKey('subscription_plans.id'), nullable=True),
        sa.Column('subscription_status', subscription_status_enum, nullable=False, server_default='active'),
        sa.Column('total_students', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active_students', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_check_ins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_gyms_id', 'gyms', ['id'])
    op.create_index('ix_gyms_subscription_plan_id', 'gyms', ['subscription_plan_id'])

    # 3. Planes de membresía por gimnasio
    op.create_table(
        'membership_plans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('gym_id', sa.Integer(), sa.ForeignKey('gyms.id'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ARS'),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('duration_type', sa.String(10), nullable=False, server_default='months'),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('students_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('gym_id', 'name', name='uq_membership_plan_gym_name'),
    )
    op.create_index('ix_membership_plans_id', 'membership_plans', ['id'])
    op.create_index('ix_membership_plans_gym_id', 'membership_plans', ['gym_id'])
    op.create_index('ix_membership_plans_is_active', 'membership_plans', ['is_active'])

    # 4. Alumnos
    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('gym_id', sa.Integer(), sa.ForeignKey('gyms.id'), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('dni', sa.String(20), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('photo_url', sa.String(500), nullable=True),
        sa.Column('check_in_token', sa.String(64), nullable=False),
        sa.Column('membership_plan_id', sa.Integer(), sa.ForeignKey('membership_plans.id'), nullable=True),
        sa.Column('membership_status', membership_status_enum, nullable=False, server_default='active'),
        sa.Column('membership_start_date', sa.DateTime(), nullable=True),
        sa.Column('membership_expiry_date', sa.DateTime(), nullable=True),
        sa.Column('membership_last_payment', sa.DateTime(), nullable=True),
        sa.Column('membership_price_cents', sa.Integer(), nullable=True),
        sa.Column('membership_duration', sa.Integer(), nullable=True),
        sa.Column('membership_duration_type', sa.String(10), nullable=True),
        sa.Column('last_check_in', sa.DateTime(), nullable=True),
        sa.Column('total_check_ins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('join_date', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('gym_id', 'dni', name='uq_student_gym_dni'),
        sa.UniqueConstraint('gym_id', 'check_in_token', name='uq_student_gym_token'),
    )
    op.create_index('ix_students_id', 'students', ['id'])
    op.create_index('ix_students_gym_id', 'students', ['gym_id'])
    op.create_index('ix_students_check_in_token', 'students', ['check_in_token'])
    op.create_index('ix_students_membership_plan_id', 'students', ['membership_plan_id'])
    op.create_index('ix_students_status_expiry', 'students', ['membership_status', 'membership_expiry_date'])

    # 5. Asistencias
    op.create_table(
        'check_ins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('gym_id', sa.Integer(), sa.ForeignKey('gyms.id'), nullable=False),
        sa.Column('method', check_in_method_enum, nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('check_in_day', sa.Date(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'check_in_day', name='uq_check_in_student_day'),
    )
    op.create_index('ix_check_ins_id', 'check_ins', ['id'])
    op.create_index('ix_check_ins_student_id', 'check_ins', ['student_id'])
    op.create_index('ix_check_ins_gym_id', 'check_ins', ['gym_id'])
    op.create_index('ix_check_ins_gym_timestamp', 'check_ins', ['gym_id', 'timestamp'])

    # 6. Snapshots de métricas
    op.create_table(
        'analytics_snapshots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('gym_id', sa.Integer(), sa.ForeignKey('gyms.id'), nullable=False),
        sa.Column('period_type', sa.String(10), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('generated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('gym_id', 'period_type', 'period_start', name='uq_snapshot_gym_period'),
    )
    op.create_index('ix_analytics_snapshots_id', 'analytics_snapshots', ['id'])
    op.create_index('ix_analytics_snapshots_gym_id', 'analytics_snapshots', ['gym_id'])


def downgrade():
    op.drop_table('analytics_snapshots')
    op.drop_table('check_ins')
    op.drop_table('students')
    op.drop_table('membership_plans')
    op.drop_table('gyms')
    op.drop_table('subscription_plans')

    bind = op.get_bind()
    check_in_method_enum.drop(bind, checkfirst=True)
    membership_status_enum.drop(bind, checkfirst=True)
    subscription_status_enum.drop(bind, checkfirst=True)
