"""Which media objects an actor may list.

Unscoped listings only contain objects in the actor's own user context.
A course or group scope adds every object in that context plus objects whose
linked attachment lives there and is readable by the actor. Attachments
stay joined to their media object after being deleted, so a deleted
attachment never hides its media object from a scoped listing.
"""
import uuid
import logging
from dataclasses import dataclass
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from lms_media.core.errors import BadRequest, NotFound, Unauthorized
from lms_media.core.paging import PageRequest
from lms_media.core.security import Principal
from lms_media.modules.directory.context import ContextRef
from lms_media.modules.directory.repository import DirectoryRepository
from lms_media.modules.files.repository import AttachmentRepository
from lms_media.modules.media.models import MediaObject
from lms_media.modules.media.repository import MediaObjectRepository, SORT_COLUMNS
from lms_media.modules.permissions.policy import PermissionPolicy

log = logging.getLogger(__name__)

@dataclass(frozen=True)
class ListQuery:
    course_id: uuid.UUID | None = None
    group_id: uuid.UUID | None = None
    search_term: str | None = None
    sort: str = "title"
    order: str = "asc"
    page: PageRequest = PageRequest()

    def __post_init__(self):
        if self.sort not in SORT_COLUMNS:
            raise BadRequest(f"sort must be one of {', '.join(SORT_COLUMNS)}")
        if self.order not in ("asc", "desc"):
            raise BadRequest("order must be asc or desc")
        if self.course_id is not None and self.group_id is not None:
            raise BadRequest("course_id and group_id are mutually exclusive")

@dataclass
class VisiblePage:
    items: Sequence[MediaObject]
    page: PageRequest
    has_next: bool

class VisibilityResolver:
    def __init__(self, session: AsyncSession, policy: PermissionPolicy):
        self.policy = policy
        self.directory = DirectoryRepository(session)
        self.attachments = AttachmentRepository(session)
        self.media = MediaObjectRepository(session)

    async def _scope(self, principal: Principal, query: ListQuery) -> tuple[ContextRef, list[uuid.UUID]]:
        if query.course_id is not None:
            course = await self.directory.get_course(principal.org_id, query.course_id)
            if course is None:
                raise NotFound("Course not found")
            context = ContextRef.course(course.id)
        elif query.group_id is not None:
            group = await self.directory.get_group(principal.org_id, query.group_id)
            if group is None:
                raise NotFound("Group not found")
            context = ContextRef.group(group.id)
        else:
            return ContextRef.user(principal.user_id), []

        if not await self.policy.has_right(principal, context, "read"):
            raise Unauthorized()

        # context read already holds, so only locked attachments need a further check
        attachment_ids = [
            att.id
            for att in await self.attachments.list_in_context(principal.org_id, context, with_media=True)
            if not att.locked or await self.policy.has_right(principal, att, "read")
        ]
        return context, attachment_ids

    async def resolve(self, principal: Principal, query: ListQuery) -> VisiblePage:
        context, attachment_ids = await self._scope(principal, query)
        page = query.page
        if page.out_of_range:
            return VisiblePage(items=[], page=page, has_next=False)
        # one extra row tells us whether a next page exists
        rows = await self.media.list_visible(
            principal.org_id,
            contexts=[context],
            attachment_ids=attachment_ids,
            search_term=query.search_term,
            sort=query.sort,
            order=query.order,
            limit=page.per_page + 1,
            offset=page.offset,
        )
        log.debug(f"visible media for {context.code}: {len(rows)} rows at page {page.page}")
        return VisiblePage(items=rows[: page.per_page], page=page, has_next=len(rows) > page.per_page)
