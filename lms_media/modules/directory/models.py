import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey, UniqueConstraint
from lms_media.core.base import Base, TimestampedTenantMixin

class User(Base, TimestampedTenantMixin):
    __tablename__ = "users"
    display_name: Mapped[str] = mapped_column(String(255))

class Course(Base, TimestampedTenantMixin):
    __tablename__ = "courses"
    name: Mapped[str] = mapped_column(String(255))

class Group(Base, TimestampedTenantMixin):
    __tablename__ = "groups"
    name: Mapped[str] = mapped_column(String(255))
    course_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("courses.id"), nullable=True)

class Enrollment(Base, TimestampedTenantMixin):
    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("course_id", "user_id", "role"),)
    course_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("courses.id"), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), index=True)
    role: Mapped[str] = mapped_column(String(16), default="student")  # student | teacher | ta | designer

class GroupMembership(Base, TimestampedTenantMixin):
    __tablename__ = "group_memberships"
    __table_args__ = (UniqueConstraint("group_id", "user_id"),)
    group_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("groups.id"), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), index=True)

class RoleOverride(Base, TimestampedTenantMixin):
    __tablename__ = "role_overrides"
    course_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("courses.id"), index=True)
    role: Mapped[str] = mapped_column(String(16))
    permission: Mapped[str] = mapped_column(String(64))  # manage_content | manage_files_edit
    enabled: Mapped[bool] = mapped_column(default=False)
