"""create review scheduling tables

Revision ID: 3c81b0e4d5a2
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c81b0e4d5a2"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_members_id", "members", ["id"], unique=False)
    op.create_index("ix_members_username", "members", ["username"], unique=True)

    op.create_table(
        "decks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_decks_member_id", "decks", ["member_id"], unique=False)

    op.create_table(
        "cards",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("deck_id", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("answer", sa.Text(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["deck_id"], ["decks.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cards_deck_id", "cards", ["deck_id"], unique=False)

    op.create_table(
        "review_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("card_id", sa.Integer(), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("interval_days", sa.Integer(), nullable=False),
        sa.Column("repetitions", sa.Integer(), nullable=False),
        sa.Column("last_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_outcome", sa.String(length=16), nullable=True),
        sa.Column("total_reviews", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"]),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("member_id", "card_id", name="uq_review_record_member_card"),
    )
    op.create_index("ix_review_records_member_id", "review_records", ["member_id"], unique=False)
    op.create_index("ix_review_records_card_id", "review_records", ["card_id"], unique=False)
    op.create_index(
        "ix_review_records_member_due_at",
        "review_records",
        ["member_id", "due_at"],
        unique=False,
    )

    op.create_table(
        "review_activities",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("card_id", sa.Integer(), nullable=False),
        sa.Column("outcome", sa.String(length=16), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"]),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_review_activities_card_id", "review_activities", ["card_id"], unique=False)
    op.create_index(
        "ix_review_activities_member_completed_at",
        "review_activities",
        ["member_id", "completed_at"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_review_activities_member_completed_at", table_name="review_activities")
    op.drop_index("ix_review_activities_card_id", table_name="review_activities")
    op.drop_table("review_activities")

    op.drop_index("ix_review_records_member_due_at", table_name="review_records")
    op.drop_index("ix_review_records_card_id", table_name="review_records")
    op.drop_index("ix_review_records_member_id", table_name="review_records")
    op.drop_table("review_records")

    op.drop_index("ix_cards_deck_id", table_name="cards")
    op.drop_table("cards")

    op.drop_index("ix_decks_member_id", table_name="decks")
    op.drop_table("decks")

    op.drop_index("ix_members_username", table_name="members")
    op.drop_index("ix_members_id", table_name="members")
    op.drop_table("members")
