import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, ForeignKey
from lms_media.core.base import Base, TimestampedTenantMixin
from lms_media.modules.directory.context import ContextRef, ContextKind

class Attachment(Base, TimestampedTenantMixin):
    __tablename__ = "attachments"
    context_type: Mapped[str] = mapped_column(String(16))  # user | course | group
    context_id: Mapped[uuid.UUID] = mapped_column(index=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    filename: Mapped[str] = mapped_column(String(255))
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content_type: Mapped[str] = mapped_column(String(128), default="application/octet-stream")
    media_entry_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    locked: Mapped[bool] = mapped_column(default=False)
    file_state: Mapped[str] = mapped_column(String(16), default="available")  # available | deleted
    replacement_attachment_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("attachments.id"), nullable=True)

    @property
    def context(self) -> ContextRef:
        return ContextRef(ContextKind(self.context_type), self.context_id)

    @property
    def is_deleted(self) -> bool:
        return self.file_state == "deleted"

class MediaTrack(Base, TimestampedTenantMixin):
    __tablename__ = "media_tracks"
    attachment_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("attachments.id"), index=True)
    kind: Mapped[str] = mapped_column(String(32), default="subtitles")  # subtitles | captions | descriptions | chapters | metadata
    locale: Mapped[str] = mapped_column(String(16), default="en")
    content: Mapped[str] = mapped_column(Text)
    user_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
