"""Registered OAuth2 client applications (provisioned out-of-band)."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from auth_broker.models.base import Base, CreatedAtMixin


class RegisteredClient(Base, CreatedAtMixin):
    __tablename__ = "oauth2_clients"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    # Compared as plain text; see DESIGN.md for the open security question
    secret: Mapped[str] = mapped_column(String(255), nullable=False)
    # Glob pattern, "*" matches any substring
    redirect_uri: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<RegisteredClient id={self.id}>"
