"""create user

Revision ID: 0001_create_user
Revises:
Create Date: 2024-05-02 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_create_user"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("invite_code", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(op.f("ix_user_name"), "user", ["name"], unique=True)
    op.create_index(op.f("ix_user_invite_code"), "user", ["invite_code"], unique=True)


def downgrade():
    op.drop_index(op.f("ix_user_invite_code"), table_name="user")
    op.drop_index(op.f("ix_user_name"), table_name="user")
    op.drop_table("user")
