"""Create books and ratings tables."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_books_and_ratings"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "books",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("uid", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("author", sa.String(length=255), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("genre", sa.String(length=255), nullable=True),
        sa.Column("image_url", sa.String(length=1024), nullable=False),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("average_rating", sa.Float(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_books_uid", "books", ["uid"], unique=True)
    op.create_index("ix_books_owner_id", "books", ["owner_id"])
    op.create_index("ix_books_average_rating", "books", ["average_rating"])

    op.create_table(
        "ratings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "book_id", sa.Integer(), sa.ForeignKey("books.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("grade", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("book_id", "user_id", name="uq_ratings_book_user"),
    )
    op.create_index("ix_ratings_book_id", "ratings", ["book_id"])


def downgrade() -> None:
    op.drop_index("ix_ratings_book_id", table_name="ratings")
    op.drop_table("ratings")
    op.drop_index("ix_books_average_rating", table_name="books")
    op.drop_index("ix_books_owner_id", table_name="books")
    op.drop_index("ix_books_uid", table_name="books")
    op.drop_table("books")
