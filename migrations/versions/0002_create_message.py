"""create message

Revision ID: 0002_create_message
Revises: 0001_create_user
Create Date: 2024-05-02 00:10:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_create_message"
down_revision = "0001_create_user"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "message",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user", sa.String(length=120), nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("time", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(op.f("ix_message_time"), "message", ["time"])


def downgrade():
    op.drop_index(op.f("ix_message_time"), table_name="message")
    op.drop_table("message")
