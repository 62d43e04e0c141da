import enum
import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey, UniqueConstraint
from lms_media.core.base import Base, TimestampedTenantMixin
from lms_media.modules.directory.context import ContextRef, ContextKind

DEFAULT_TITLE = "Untitled"

class MediaType(str, enum.Enum):
    VIDEO = "video"
    AUDIO = "audio"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, raw: str | None) -> "MediaType | None":
        if not raw:
            return None
        raw = raw.lower()
        # provider types come through as e.g. "video/mp4"
        head = raw.split("/", 1)[0]
        for member in cls:
            if member.value == head:
                return member
        return cls.UNKNOWN

class MediaObject(Base, TimestampedTenantMixin):
    __tablename__ = "media_objects"
    __table_args__ = (
        UniqueConstraint("org_id", "context_type", "context_id", "media_id", name="uq_media_objects_context_media_id"),
    )

    media_id: Mapped[str] = mapped_column(String(255), index=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_entered_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    media_type: Mapped[str | None] = mapped_column(String(16), nullable=True)  # video | audio | unknown
    workflow_state: Mapped[str] = mapped_column(String(16), default="active")  # active | deleted

    user_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    context_type: Mapped[str] = mapped_column(String(16))  # user | course | group
    context_id: Mapped[uuid.UUID] = mapped_column(index=True)
    # Set once, after the originating upload completes
    attachment_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("attachments.id"), nullable=True, index=True)

    @property
    def context(self) -> ContextRef:
        return ContextRef(ContextKind(self.context_type), self.context_id)

    @context.setter
    def context(self, ref: ContextRef) -> None:
        self.context_type = ref.kind.value
        self.context_id = ref.id

    @property
    def effective_title(self) -> str:
        return effective_title(self.user_entered_title, self.title)

def effective_title(user_entered_title: str | None, title: str | None) -> str:
    """user-entered title > title > "Untitled"."""
    if user_entered_title:
        return user_entered_title
    if title:
        return title
    return DEFAULT_TITLE
