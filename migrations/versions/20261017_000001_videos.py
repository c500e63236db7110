from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261017_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    container_kind_enum = sa.Enum("mp4", "webm", "ogg", name="containerkind")

    op.create_table(
        "videos",
        sa.Column("id", sa.String(length=12), primary_key=True),
        sa.Column("path", sa.String(length=1024), nullable=False, unique=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("artist", sa.Text(), nullable=False),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("upload_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("container_kind", container_kind_enum, nullable=False),
        sa.Column("original_filename", sa.String(length=1024), nullable=False),
        sa.Column("duration_s", sa.Float(), nullable=False),
        sa.Column("thumbnail_path", sa.String(length=1024), nullable=True),
    )
    op.create_index("ix_videos_upload_time", "videos", ["upload_time"])


def downgrade() -> None:
    op.drop_index("ix_videos_upload_time", table_name="videos")
    op.drop_table("videos")

    sa.Enum(name="containerkind").drop(op.get_bind(), checkfirst=False)
