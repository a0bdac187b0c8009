from __future__ import annotations

import enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class GameStatus(str, enum.Enum):
    DRAFT = "draft"
    COMPLETED = "completed"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    telegram_username = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    participations = relationship("Participant", back_populates="user")

    def __repr__(self) -> str:
        return "<User(id={0}, telegram_id={1}, username={2})>".format(
            self.id, self.telegram_id, self.telegram_username
        )


class Game(Base):
    __tablename__ = "games"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    invite_code = Column(String(16), unique=True, nullable=False, index=True)
    creator_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        Enum(GameStatus, name="game_status"),
        nullable=False,
        default=GameStatus.DRAFT,
        server_default=GameStatus.DRAFT.name,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    creator = relationship("User")
    participants = relationship(
        "Participant",
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="Participant.id",
    )
    exclusions = relationship("Exclusion", back_populates="game", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Game(id={self.id}, invite_code={self.invite_code}, status={self.status})>"


class Participant(Base):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    name = Column(String, nullable=False)
    is_offline = Column(Boolean, default=False, nullable=False)
    receiver_id = Column(Integer, ForeignKey("participants.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    game = relationship("Game", back_populates="participants")
    user = relationship("User", back_populates="participations")
    receiver = relationship("Participant", remote_side=[id], foreign_keys=[receiver_id])

    __table_args__ = (
        UniqueConstraint("game_id", "user_id", name="uq_participants_game_user"),
        CheckConstraint("(user_id IS NULL) = is_offline", name="ck_participants_offline_unlinked"),
    )

    @property
    def is_proxy_managed(self) -> bool:
        return self.is_offline

    def __repr__(self) -> str:
        # receiver_id must never appear here, reprs reach the logs
        return f"<Participant(id={self.id}, game_id={self.game_id}, name={self.name!r})>"


class Exclusion(Base):
    __tablename__ = "exclusions"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    who_id = Column(Integer, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    whom_id = Column(Integer, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    game = relationship("Game", back_populates="exclusions")
    who = relationship("Participant", foreign_keys=[who_id])
    whom = relationship("Participant", foreign_keys=[whom_id])

    __table_args__ = (
        UniqueConstraint("game_id", "who_id", "whom_id", name="uq_exclusions_game_pair"),
        CheckConstraint("who_id <> whom_id", name="ck_exclusions_not_self"),
    )

    def __repr__(self) -> str:
        return f"<Exclusion(id={self.id}, game_id={self.game_id}, who={self.who_id}, whom={self.whom_id})>"
