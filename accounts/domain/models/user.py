"""User domain model — maps to the 'users' table."""

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Index, Integer, String, Text, func

from accounts.infrastructure.database import Base


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    BLOCKED = "blocked"
    DELETED = "deleted"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    phone_code = Column(String(10), nullable=True)
    phone_number = Column(String(20), nullable=True)
    profile_picture = Column(String(500), nullable=True)

    auth_token = Column(Text, nullable=True)
    fcm_token = Column(Text, nullable=True)

    email_verification_otp = Column(String(12), nullable=True)
    forgot_password_otp = Column(String(12), nullable=True)
    is_email_verified = Column(Boolean, nullable=False, default=False)

    status = Column(
        Enum(UserStatus, native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    role = Column(
        Enum(UserRole, native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
        default=UserRole.USER,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<User {self.email}>"


# One live record per email; soft-deleted rows may repeat it
Index(
    "uq_users_email_live",
    func.lower(User.email),
    unique=True,
    sqlite_where=User.deleted_at.is_(None),
    postgresql_where=User.deleted_at.is_(None),
)
