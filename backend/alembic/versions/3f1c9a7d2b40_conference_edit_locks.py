"""users, conferences, editor assignments and edit locks

Revision ID: 3f1c9a7d2b40
Revises:
Create Date: 2026-10-16 09:12:44.318201

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels = None
depends_on = None

ROLE_NAME = "userrole"


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.Enum("admin", "editor", "viewer", name=ROLE_NAME), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "conferences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "created_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_conferences_created_by", "conferences", ["created_by"])

    op.create_table(
        "conference_user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "conference_id",
            sa.Integer(),
            sa.ForeignKey("conferences.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "assigned_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("conference_id", "user_id", name="uq_conference_user"),
    )
    op.create_index("ix_conference_user_conference_id", "conference_user", ["conference_id"])
    op.create_index("ix_conference_user_user_id", "conference_user", ["user_id"])

    # 리소스당 1행: PK가 동시 획득을 직렬화한다
    op.create_table(
        "edit_locks",
        sa.Column("resource_id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column(
            "holder_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("token", sa.String(length=32), nullable=False),
        sa.Column("acquired_at", sa.DateTime(), nullable=False),
        sa.Column("last_renewed_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_edit_locks_holder_id", "edit_locks", ["holder_id"])
    op.create_index("ix_edit_locks_expires_at", "edit_locks", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_edit_locks_expires_at", table_name="edit_locks")
    op.drop_index("ix_edit_locks_holder_id", table_name="edit_locks")
    op.drop_table("edit_locks")
    op.drop_index("ix_conference_user_user_id", table_name="conference_user")
    op.drop_index("ix_conference_user_conference_id", table_name="conference_user")
    op.drop_table("conference_user")
    op.drop_index("ix_conferences_created_by", table_name="conferences")
    op.drop_table("conferences")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    sa.Enum(name=ROLE_NAME).drop(op.get_bind(), checkfirst=True)
