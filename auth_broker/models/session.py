"""Authorization session correlating a redirect with its callback."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from auth_broker.models.base import Base, CreatedAtMixin


class AuthSession(Base, CreatedAtMixin):
    __tablename__ = "oauth2_sessions"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    client_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    state: Mapped[str] = mapped_column(String(128), nullable=False)
    callback_state: Mapped[str] = mapped_column(Text, nullable=False)
    callback_url: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<AuthSession client_id={self.client_id}>"
