import uuid
from datetime import datetime
from pydantic import BaseModel, Field

class MediaSourceOut(BaseModel):
    bitrate: int
    label: str
    url: str
    src: str

class MediaTrackOut(BaseModel):
    id: uuid.UUID
    kind: str
    locale: str
    label: str
    src: str
    inherited: bool = False

class MediaObjectOut(BaseModel):
    media_id: str
    title: str
    media_type: str | None
    created_at: datetime | None
    can_add_captions: bool
    embedded_iframe_url: str
    media_sources: list[MediaSourceOut] | None = None
    media_tracks: list[MediaTrackOut] | None = None

class MediaObjectCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=255, description="External media id")
    context_code: str | None = Field(None, description="user_<id> | course_<id> | group_<id>; defaults to the caller")
    type: str | None = None
    title: str | None = None
    user_entered_title: str | None = None

class MediaObjectUpdate(BaseModel):
    user_entered_title: str

class MediaTrackCreate(BaseModel):
    kind: str = Field(default="subtitles", pattern="^(subtitles|captions|descriptions|chapters|metadata)$")
    locale: str = Field(..., min_length=2, max_length=16)
    content: str = Field(..., min_length=1)
