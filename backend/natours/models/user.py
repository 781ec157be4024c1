"""User model — authentication, roles and password lifecycle."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from natours.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

ROLES = ("user", "guide", "lead-guide", "admin")


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A customer, guide or administrator."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    photo: Mapped[str] = mapped_column(String(255), default="default.jpg", nullable=False)
    role: Mapped[str] = mapped_column(String(50), default="user", nullable=False)  # see ROLES
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    # Password lifecycle
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Soft delete: inactive users are excluded from default queries
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"
