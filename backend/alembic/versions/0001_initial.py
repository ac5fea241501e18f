from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("username", sa.String(), nullable=False, unique=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "player",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("rating", sa.Float(), nullable=False, server_default="1500"),
        sa.Column("games_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "uq_player_name_lower",
        "player",
        [sa.text("lower(name)")],
        unique=True,
    )
    op.create_table(
        "match",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("player1_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("player2_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("winner_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("player1_sets_won", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("player2_sets_won", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sets", sa.JSON(), nullable=True),
        sa.Column("player1_rating_before", sa.Float(), nullable=False),
        sa.Column("player2_rating_before", sa.Float(), nullable=False),
        sa.Column("player1_rating_after", sa.Float(), nullable=False),
        sa.Column("player2_rating_after", sa.Float(), nullable=False),
        sa.Column("rating_change", sa.Float(), nullable=False),
        sa.Column("rating_formula", sa.String(), nullable=False),
        sa.Column("played_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "player1_id <> player2_id", name="ck_match_distinct_players"
        ),
    )
    op.create_index(
        "ix_match_chronology", "match", ["played_at", "created_at", "id"]
    )
    op.create_index("ix_match_player1_id", "match", ["player1_id"])
    op.create_index("ix_match_player2_id", "match", ["player2_id"])


def downgrade():
    op.drop_index("ix_match_player2_id", table_name="match")
    op.drop_index("ix_match_player1_id", table_name="match")
    op.drop_index("ix_match_chronology", table_name="match")
    op.drop_table("match")
    op.drop_index("uq_player_name_lower", table_name="player")
    op.drop_table("player")
    op.drop_table("user")
