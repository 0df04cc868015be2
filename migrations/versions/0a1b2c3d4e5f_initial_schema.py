"""initial schema: users, companies, products, comments, talks, followings, audit

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0a1b2c3d4e5f"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=False),
        nullable=False,
        server_default=sa.func.current_timestamp(),
    )


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        _created_at(),
        sa.UniqueConstraint("name", name="uq_companies_name"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("login_name", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("name_kana", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("twitter_account", sa.String(length=255), nullable=True),
        sa.Column("discord_account", sa.String(length=255), nullable=True),
        sa.Column("github_account", sa.String(length=255), nullable=True),
        sa.Column("blog_url", sa.String(length=512), nullable=True),
        sa.Column("facebook_url", sa.String(length=512), nullable=True),
        sa.Column("times_url", sa.String(length=512), nullable=True),
        sa.Column("avatar_key", sa.String(length=512), nullable=True),
        sa.Column("admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("mentor", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("adviser", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("trainee", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("job_seeking", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("graduated_on", sa.Date(), nullable=True),
        sa.Column("retired_on", sa.Date(), nullable=True),
        sa.Column("retire_reason", sa.Text(), nullable=True),
        sa.Column("training_ends_on", sa.Date(), nullable=True),
        sa.Column("company_id", sa.Integer(), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=False), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("login_name", name="uq_users_login_name"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("idx_users_last_activity_at", "users", ["last_activity_at"])
    op.create_index("idx_users_company_id", "users", ["company_id"])

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("practice_title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("wip", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("published_at", sa.DateTime(timezone=False), nullable=True),
        _created_at(),
        sa.Column("checker_id", sa.Integer(), nullable=True),
        sa.Column("checked_at", sa.DateTime(timezone=False), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["checker_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_products_checker_id", "products", ["checker_id"])
    op.create_index("idx_products_published_at", "products", ["published_at"])
    op.create_index("idx_products_user_id", "products", ["user_id"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        _created_at(),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_comments_product_id_user_id", "comments", ["product_id", "user_id"])

    op.create_table(
        "talks",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("unreplied", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", name="uq_talks_user_id"),
    )

    op.create_table(
        "followings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("follower_id", sa.Integer(), nullable=False),
        sa.Column("followed_id", sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["follower_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["followed_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("follower_id", "followed_id", name="uq_followings_follower_followed"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _created_at(),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("actor_login_name", sa.String(length=64), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=True),
        sa.Column("entity_id", sa.String(length=128), nullable=True),
        sa.Column("reason", sa.String(length=512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("client_ip", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("followings")
    op.drop_table("talks")
    op.drop_index("idx_comments_product_id_user_id", table_name="comments")
    op.drop_table("comments")
    op.drop_index("idx_products_user_id", table_name="products")
    op.drop_index("idx_products_published_at", table_name="products")
    op.drop_index("idx_products_checker_id", table_name="products")
    op.drop_table("products")
    op.drop_index("idx_users_company_id", table_name="users")
    op.drop_index("idx_users_last_activity_at", table_name="users")
    op.drop_table("users")
    op.drop_table("companies")
