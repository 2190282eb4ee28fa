"""Create marketplace tables

Revision ID: 7a3e9c1d52b4
Revises:
Create Date: 2026-10-19 10:12:41.318204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7a3e9c1d52b4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table('users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('mobile', sa.String(length=15), nullable=True),
        sa.Column('referral_code', sa.String(), nullable=True),
        sa.Column('institute_name', sa.String(), nullable=True),
        sa.Column('whatsapp', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_referral_code', 'users', ['referral_code'], unique=False)

    op.create_table('courses',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('instructor', sa.String(), nullable=True),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('level', sa.String(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('original_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('video_url', sa.String(), nullable=True),
        sa.Column('youtube_id', sa.String(), nullable=True),
        sa.Column('lecture_count', sa.Integer(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('resell_listings',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('partner_id', sa.UUID(), nullable=False),
        sa.Column('referral_code', sa.String(), nullable=False),
        sa.Column('course_id', sa.String(), nullable=False),
        sa.Column('selling_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('actual_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('commission', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ),
        sa.ForeignKeyConstraint(['partner_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('partner_id', 'course_id', name='uq_resell_listing_partner_course')
    )
    op.create_index('ix_resell_listings_referral_code', 'resell_listings', ['referral_code'], unique=False)

    op.create_table('enrolled_courses',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('course_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('watched_duration', sa.Float(), nullable=False),
        sa.Column('last_accessed', sa.DateTime(timezone=True), nullable=True),
        sa.Column('video_url', sa.String(), nullable=True),
        sa.Column('youtube_id', sa.String(), nullable=True),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_enrolled_course_user_course')
    )
    op.create_index('ix_enrolled_courses_user_id', 'enrolled_courses', ['user_id'], unique=False)

    op.create_table('purchases',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('course_id', sa.String(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('plan_days', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_purchase_user_course')
    )
    op.create_index('ix_purchases_user_id', 'purchases', ['user_id'], unique=False)

    op.create_table('sales',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('student_name', sa.String(), nullable=False),
        sa.Column('student_email', sa.String(), nullable=False),
        sa.Column('course_id', sa.String(), nullable=False),
        sa.Column('course_name', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('commission_rate', sa.Numeric(5, 4), nullable=False),
        sa.Column('commission', sa.Numeric(16, 6), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('plan_days', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('partner_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ),
        sa.ForeignKeyConstraint(['student_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sales_student_id', 'sales', ['student_id'], unique=False)
    op.create_index('ix_sales_partner_id', 'sales', ['partner_id'], unique=False)

    op.create_table('payouts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('partner_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('payer', sa.String(), nullable=True),
        sa.Column('utr', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payouts_partner_id', 'payouts', ['partner_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_payouts_partner_id', table_name='payouts')
    op.drop_table('payouts')
    op.drop_index('ix_sales_partner_id', table_name='sales')
    op.drop_index('ix_sales_student_id', table_name='sales')
    op.drop_table('sales')
    op.drop_index('ix_purchases_user_id', table_name='purchases')
    op.drop_table('purchases')
    op.drop_index('ix_enrolled_courses_user_id', table_name='enrolled_courses')
    op.drop_table('enrolled_courses')
    op.drop_index('ix_resell_listings_referral_code', table_name='resell_listings')
    op.drop_table('resell_listings')
    op.drop_table('courses')
    op.drop_index('ix_users_referral_code', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
