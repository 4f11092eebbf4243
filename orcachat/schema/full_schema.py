import enum
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Text, Uuid
from uuid6 import uuid7
from sqlmodel import Column, SQLModel, Field, String
from orcachat.common.utils import now

class TurnRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"

class Users(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)  #* optional only until the row is flushed
    public_id: uuid.UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False)
    )
    email: str = Field(sa_column=Column(String(320), nullable=False, unique=True, index=True))
    password_hash: str = Field(sa_column=Column(Text(), nullable=False))
    verified: bool = Field(default=False, sa_column=Column(Boolean(), nullable=False, default=False))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))


class VerificationRequest(SQLModel, table=True):
    """Live one-time code for a destination. Expiry is checked on read; nothing evicts rows actively."""
    __tablename__ = "verification_requests"

    id: Optional[int] = Field(default=None, primary_key=True)
    destination: str = Field(sa_column=Column(String(320), nullable=False, unique=True, index=True))
    code: str = Field(sa_column=Column(String(6), nullable=False))
    expires_at: int = Field(sa_column=Column(BigInteger(), nullable=False))   # ms since epoch


class SendAttempt(SQLModel, table=True):
    """Append-only audit of code sends; the rate-limit windows are computed from it."""
    __tablename__ = "send_attempts"

    id: Optional[int] = Field(default=None, primary_key=True)
    destination: str = Field(sa_column=Column(String(320), nullable=False))
    client_address: str = Field(sa_column=Column(String(64), nullable=False))
    ts: int = Field(sa_column=Column(BigInteger(), nullable=False))   # ms since epoch

    __table_args__ = (
        Index("ix_send_attempts_destination_ts", "destination", "ts"),
        Index("ix_send_attempts_client_address_ts", "client_address", "ts"),
    )


class Conversation(SQLModel, table=True):
    __tablename__ = "conversations"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    title: str = Field(default="New Chat", sa_column=Column(String(255), nullable=False, default="New Chat"))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now))


class Turn(SQLModel, table=True):
    __tablename__ = "turns"

    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(sa_column=Column(ForeignKey("conversations.id", ondelete="CASCADE"), index=True, nullable=False))
    role: str = Field(sa_column=Column(String(16), nullable=False))
    content: str = Field(default="", sa_column=Column(Text(), nullable=False, default=""))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

