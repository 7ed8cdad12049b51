"""Videos table migration.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the videos table holding originals and their transcodes.
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
        "videos",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("file_path", sa.String(1024), nullable=False),
        sa.Column("video_description", sa.Text(), nullable=False),
        sa.Column("transcoded_path", sa.String(1024), nullable=True),
        sa.Column("quality", sa.String(16), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="uploading"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transcoded_path"),
    )
    op.create_index(op.f("ix_videos_email"), "videos", ["email"], unique=False)
    op.create_index(op.f("ix_videos_file_path"), "videos", ["file_path"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_videos_file_path"), table_name="videos")
    op.drop_index(op.f("ix_videos_email"), table_name="videos")
    op.drop_table("videos")
