"""photos table

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "photos",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
    )
    op.create_index("ix_photos_created_at", "photos", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_photos_created_at", table_name="photos")
    op.drop_table("photos")
