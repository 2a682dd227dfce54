"""One-time exchange codes handed to clients after a successful callback."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from auth_broker.models.base import Base, CreatedAtMixin


class ExchangeCode(Base, CreatedAtMixin):
    __tablename__ = "oauth2_codes"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    client_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)

    def __repr__(self) -> str:
        return f"<ExchangeCode client_id={self.client_id}>"
