"""Create user, debate, entry and vote tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "3f1c9a7d2b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("auth_id", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("wins_count", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "debate",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("topic", sa.String(), nullable=False),
        sa.Column("day_number", sa.Integer(), nullable=False, unique=True),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "CLOSED", name="debate_status"),
            nullable=False,
            server_default="ACTIVE",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("winning_entry_id", sa.Integer(), nullable=True),
        sa.Column("winner_commentary", sa.Text(), nullable=True),
    )
    op.create_index("ix_debate_status", "debate", ["status"])
    op.create_table(
        "entry",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("content", sa.String(280), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("debate_id", sa.Integer(), sa.ForeignKey("debate.id"), nullable=False),
        sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("vote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_entry_user_id", "entry", ["user_id"])
    op.create_index("ix_entry_debate_id", "entry", ["debate_id"])
    op.create_foreign_key(
        "debate_winning_entry_id_fkey", "debate", "entry", ["winning_entry_id"], ["id"]
    )
    op.create_table(
        "vote",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entry_id", sa.Integer(), sa.ForeignKey("entry.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("debate_id", sa.Integer(), sa.ForeignKey("debate.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("entry_id", "user_id", name="uq_vote_entry_user"),
        sa.UniqueConstraint("debate_id", "user_id", name="uq_vote_debate_user"),
    )
    op.create_index("ix_vote_entry_id", "vote", ["entry_id"])


def downgrade() -> None:
    op.drop_table("vote")
    op.drop_constraint("debate_winning_entry_id_fkey", "debate", type_="foreignkey")
    op.drop_table("entry")
    op.drop_table("debate")
    op.execute("DROP TYPE IF EXISTS debate_status")
    op.drop_table("user")
