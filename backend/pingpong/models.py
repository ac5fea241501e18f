from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Float,
    Boolean,
    Index,
    CheckConstraint,
)
from sqlalchemy.sql import func
from .db import Base


class User(Base):
    __tablename__ = "user"
    id = Column(String, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)


class Player(Base):
    __tablename__ = "player"
    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("user.id"), nullable=True)
    name = Column(String, nullable=False)
    rating = Column(Float, nullable=False, default=1500.0)
    games_played = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("uq_player_name_lower", func.lower(name), unique=True),
    )


class Match(Base):
    __tablename__ = "match"
    id = Column(String, primary_key=True)
    player1_id = Column(String, ForeignKey("player.id"), nullable=False)
    player2_id = Column(String, ForeignKey("player.id"), nullable=False)
    winner_id = Column(String, ForeignKey("player.id"), nullable=False)
    player1_sets_won = Column(Integer, nullable=False, default=0)
    player2_sets_won = Column(Integer, nullable=False, default=0)
    # [{"A": player1 points, "B": player2 points}, ...]
    sets = Column(JSON, nullable=True)
    player1_rating_before = Column(Float, nullable=False)
    player2_rating_before = Column(Float, nullable=False)
    player1_rating_after = Column(Float, nullable=False)
    player2_rating_after = Column(Float, nullable=False)
    rating_change = Column(Float, nullable=False)
    rating_formula = Column(String, nullable=False)
    played_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("player1_id <> player2_id", name="ck_match_distinct_players"),
        Index("ix_match_chronology", "played_at", "created_at", "id"),
        Index("ix_match_player1_id", "player1_id"),
        Index("ix_match_player2_id", "player2_id"),
    )
