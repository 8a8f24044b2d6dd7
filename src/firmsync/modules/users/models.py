"""User database models."""

from sqlalchemy import Boolean, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from firmsync.core.auth.roles import Role
from firmsync.core.constants import MAX_EMAIL_LENGTH, MAX_NAME_LENGTH, MAX_ROLE_NAME_LENGTH
from firmsync.core.database.base import Base, IntIdMixin, TimestampMixin


class User(Base, IntIdMixin, TimestampMixin):
    """An authenticated principal.

    Firm members carry their home tenant in ``firm_id``. Platform admins
    usually have none.

    Attributes:
        email: Unique email address
        full_name: User's full name
        role: Platform-admin or tenant role
        firm_id: Home tenant, nullable for platform admins
        is_active: Whether the user may act at all
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(MAX_EMAIL_LENGTH),
        unique=True,
        index=True,
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(
            Role,
            native_enum=False,
            length=MAX_ROLE_NAME_LENGTH,
            values_callable=lambda roles: [role.value for role in roles],
        ),
        default=Role.FIRM_USER,
        nullable=False,
    )
    firm_id: Mapped[int | None] = mapped_column(
        ForeignKey("tenants.id"),
        index=True,
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
