import enum
import uuid
from dataclasses import dataclass

class ContextKind(str, enum.Enum):
    USER = "user"
    COURSE = "course"
    GROUP = "group"

@dataclass(frozen=True)
class ContextRef:
    """Owning scope of a media object or attachment: a (kind, id) pair."""

    kind: ContextKind
    id: uuid.UUID

    @classmethod
    def user(cls, user_id: uuid.UUID) -> "ContextRef":
        return cls(ContextKind.USER, user_id)

    @classmethod
    def course(cls, course_id: uuid.UUID) -> "ContextRef":
        return cls(ContextKind.COURSE, course_id)

    @classmethod
    def group(cls, group_id: uuid.UUID) -> "ContextRef":
        return cls(ContextKind.GROUP, group_id)

    @classmethod
    def parse_code(cls, code: str) -> "ContextRef":
        """Parse a context code such as ``course_<uuid>``.

        Raises ValueError for unknown kinds or malformed ids.
        """
        kind, sep, raw_id = code.partition("_")
        if not sep:
            raise ValueError(f"malformed context code: {code!r}")
        return cls(ContextKind(kind), uuid.UUID(raw_id))

    @property
    def code(self) -> str:
        return f"{self.kind.value}_{self.id}"
