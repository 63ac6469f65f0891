from __future__ import annotations

from sqlalchemy import BigInteger, Column, Integer, String, Text

from .base import Base


class AccountRecord(Base):
    """The local actor: key pair, published documents and social graph."""

    __tablename__ = "accounts"

    name = Column(String(256), primary_key=True)
    privkey = Column(Text, nullable=True)
    pubkey = Column(Text, nullable=True)
    webfinger = Column(Text, nullable=True)
    actor = Column(Text, nullable=True)
    followers = Column(Text, nullable=True)  # JSON array of actor URIs
    following = Column(Text, nullable=True)  # JSON array of actor URIs
    blocks = Column(Text, nullable=True)  # JSON array


class MessageRecord(Base):
    """An activity or object published by the local actor."""

    __tablename__ = "messages"

    # seq preserves insertion order for "most recent match" lookups
    seq = Column(Integer, primary_key=True, autoincrement=True)
    guid = Column(String(64), unique=True, nullable=False)
    message = Column(Text, nullable=False)
    bookmark_id = Column(Integer, nullable=True, index=True)


class PermissionRecord(Base):
    """Allow/block lists for one bookmark; bookmark_id 0 holds the global lists."""

    __tablename__ = "permissions"

    bookmark_id = Column(Integer, primary_key=True, autoincrement=False)
    allowed = Column(Text, nullable=True)
    blocked = Column(Text, nullable=True)


class BookmarkRecord(Base):
    """Bookmarks published through the outbox."""

    __tablename__ = "bookmarks"

    id = Column(Integer, primary_key=True)
    url = Column(Text, nullable=False)
    title = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    tags = Column(Text, nullable=True)
    created_at = Column(BigInteger, nullable=False)
