"""Bearer token rows. Only the SHA-256 hash of a token is ever stored.

The same record lives in two tables while tokens migrate between
databases: ``user_tokens`` in the primary token database and ``tokens``
in the broker's own (legacy) database. Both models expose the same
attribute names so one store implementation serves either.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from auth_broker.models.base import Base


class UserToken(Base):
    __tablename__ = "user_tokens"

    token_hash: Mapped[str] = mapped_column("token", String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    client_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class LegacyToken(Base):
    __tablename__ = "tokens"

    token_hash: Mapped[str] = mapped_column("id", String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    client_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
