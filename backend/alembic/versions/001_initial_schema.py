"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('username', sa.String(30), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('bio', sa.String(500), nullable=False, server_default=''),
        sa.Column('skills', sa.JSON(), nullable=True),
        sa.Column('website', sa.String(255), nullable=False, server_default=''),
        sa.Column('profile_image', sa.Text(), nullable=True),
        sa.Column('reputation', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('github_id', sa.String(64), nullable=True),
        sa.Column('github_username', sa.String(255), nullable=True),
        sa.Column('github_profile_url', sa.String(255), nullable=True),
        sa.Column('google_id', sa.String(64), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='active'),
        sa.Column('user_role', sa.String(50), nullable=False, server_default='user'),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('github_id'),
        sa.UniqueConstraint('google_id'),
    )
    op.create_index('idx_user_email', 'users', ['email'])
    op.create_index('idx_user_status', 'users', ['status'])

    # Create projects table
    op.create_table(
        'projects',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(20), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('tech_stack', sa.JSON(), nullable=True),
        sa.Column('repository_free_url', sa.String(255), nullable=False, server_default=''),
        sa.Column('repository_paid_url', sa.String(255), nullable=False, server_default=''),
        sa.Column('repository_branch', sa.String(100), nullable=False, server_default='main'),
        sa.Column('repository_is_private', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('demo_url', sa.String(255), nullable=False, server_default=''),
        sa.Column('demo_screenshots', sa.JSON(), nullable=True),
        sa.Column('license_type', sa.String(20), nullable=False, server_default='free'),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('seller_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('marketplace_fee_pct', sa.Numeric(5, 2), nullable=False, server_default='20'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('free_features', sa.JSON(), nullable=True),
        sa.Column('paid_features', sa.JSON(), nullable=True),
        sa.Column('access_view_code', sa.String(20), nullable=False, server_default='public'),
        sa.Column('access_run_app', sa.String(20), nullable=False, server_default='public'),
        sa.Column('access_download_code', sa.String(20), nullable=False, server_default='licensed'),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('downloads', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stars', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('forks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='published'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('author_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
        sa.ForeignKeyConstraint(['author_id'], ['users.uuid']),
    )
    op.create_index('idx_project_author_id', 'projects', ['author_id'])
    op.create_index('idx_project_category', 'projects', ['category'])
    op.create_index('idx_project_status', 'projects', ['status'])

    # Create licenses table
    op.create_table(
        'licenses',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('project_id', sa.String(36), nullable=False),
        sa.Column('licensee_id', sa.String(36), nullable=False),
        sa.Column('license_type', sa.String(50), nullable=False),
        sa.Column('view_code', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('download_code', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('commercial_use', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('modify', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('redistribute', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('private_use', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('payment_intent_id', sa.String(255), nullable=True),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('uuid'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.uuid']),
        sa.ForeignKeyConstraint(['licensee_id'], ['users.uuid']),
        sa.UniqueConstraint('payment_intent_id'),
    )
    op.create_index('idx_license_project_id', 'licenses', ['project_id'])
    op.create_index('idx_license_licensee_id', 'licenses', ['licensee_id'])
    op.create_index('idx_license_payment_status', 'licenses', ['payment_status'])
    # At most one live (active or awaiting payment) license per project and licensee
    op.create_index(
        'uq_license_live_project_licensee',
        'licenses',
        ['project_id', 'licensee_id'],
        unique=True,
        postgresql_where=sa.text("is_active OR payment_status = 'pending'"),
        sqlite_where=sa.text("is_active = 1 OR payment_status = 'pending'"),
    )

    # Create reviews table
    op.create_table(
        'reviews',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False, server_default=''),
        sa.Column('is_verified_purchase', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reviewer_id', sa.String(36), nullable=False),
        sa.Column('project_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
        sa.ForeignKeyConstraint(['reviewer_id'], ['users.uuid']),
        sa.ForeignKeyConstraint(['project_id'], ['projects.uuid']),
        sa.UniqueConstraint('reviewer_id', 'project_id', name='uq_review_reviewer_project'),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='ck_review_rating_range'),
    )
    op.create_index('idx_review_reviewer_id', 'reviews', ['reviewer_id'])
    op.create_index('idx_review_project_id', 'reviews', ['project_id'])


def downgrade() -> None:
    op.drop_index('idx_review_project_id', table_name='reviews')
    op.drop_index('idx_review_reviewer_id', table_name='reviews')
    op.drop_table('reviews')

    op.drop_index('uq_license_live_project_licensee', table_name='licenses')
    op.drop_index('idx_license_payment_status', table_name='licenses')
    op.drop_index('idx_license_licensee_id', table_name='licenses')
    op.drop_index('idx_license_project_id', table_name='licenses')
    op.drop_table('licenses')

    op.drop_index('idx_project_status', table_name='projects')
    op.drop_index('idx_project_category', table_name='projects')
    op.drop_index('idx_project_author_id', table_name='projects')
    op.drop_table('projects')

    op.drop_index('idx_user_status', table_name='users')
    op.drop_index('idx_user_email', table_name='users')
    op.drop_table('users')
