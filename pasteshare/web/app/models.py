"""
SQLAlchemy 2.0 database models.
"""
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, BigInteger, DateTime, ForeignKey, Text, Boolean, Integer, Uuid, Index
)
from sqlalchemy.orm import relationship

from .db import Base

class Paste(Base):
    __tablename__ = "pastes"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    custom_url = Column(String(50), unique=True, nullable=True)
    title = Column(String(255), nullable=False, default="Untitled Paste")
    content = Column(Text, nullable=False, default="")
    is_jupyter_style = Column(Boolean, nullable=False, default=False)
    is_private = Column(Boolean, nullable=False, default=False)
    is_editable = Column(Boolean, nullable=False, default=False)
    password_hash = Column(String(255), nullable=True)
    expires_at = Column(DateTime, nullable=True, index=True)
    views = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    blocks = relationship(
        "Block",
        back_populates="paste",
        order_by="Block.order",
        cascade="all, delete-orphan",
    )
    files = relationship(
        "File",
        back_populates="paste",
        order_by="File.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_pastes_is_private", "is_private"),
    )

    @property
    def is_password_protected(self) -> bool:
        return self.password_hash is not None

    def is_expired(self, now: datetime = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or datetime.utcnow())

class Block(Base):
    __tablename__ = "blocks"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    paste_id = Column(Uuid, ForeignKey("pastes.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    language = Column(String(50), nullable=False, default="text")
    # Dense 0..N-1 per paste; kept by PasteStore, not by a constraint.
    order = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    paste = relationship("Paste", back_populates="blocks")

class File(Base):
    __tablename__ = "files"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    paste_id = Column(Uuid, ForeignKey("pastes.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    size = Column(BigInteger, nullable=False)
    storage_path = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    paste = relationship("Paste", back_populates="files")
