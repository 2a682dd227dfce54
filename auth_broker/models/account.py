"""Account status keyed by email. No row means the account is active."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from auth_broker.models.base import Base, CreatedAtMixin


class Account(Base, CreatedAtMixin):
    __tablename__ = "accounts"

    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Account active={self.is_active}>"
