"""Right checks for media, attachments and their enclosing contexts.

Resolvers receive a ``PermissionPolicy`` rather than consulting models
directly, so the authorization engine can be swapped without touching them.
Anonymous principals (``None``) hold no rights.
"""
import uuid
import logging
from typing import Any, Protocol, runtime_checkable
from sqlalchemy.ext.asyncio import AsyncSession
from lms_media.core.security import Principal
from lms_media.modules.directory.context import ContextRef, ContextKind
from lms_media.modules.directory.repository import DirectoryRepository
from lms_media.modules.files.models import Attachment
from lms_media.modules.media.models import MediaObject

log = logging.getLogger(__name__)

STAFF_ROLES = frozenset({"teacher", "ta", "designer"})

@runtime_checkable
class PermissionPolicy(Protocol):
    async def has_right(self, principal: Principal | None, resource: Any, right: str) -> bool: ...

class EnrollmentPolicy(PermissionPolicy):
    """Rights derived from course enrollments, group memberships and role overrides."""

    def __init__(self, session: AsyncSession):
        self.directory = DirectoryRepository(session)

    async def has_right(self, principal: Principal | None, resource: Any, right: str) -> bool:
        if principal is None or resource is None:
            return False
        if isinstance(resource, MediaObject):
            return await self._media_object(principal, resource, right)
        if isinstance(resource, Attachment):
            return await self._attachment(principal, resource, right)
        if isinstance(resource, ContextRef):
            return await self._context(principal, resource, right)
        log.debug(f"No rights defined for {type(resource).__name__}")
        return False

    async def _course_permission(self, principal: Principal, course_id: uuid.UUID, permission: str) -> bool:
        roles = await self.directory.course_roles(principal.org_id, course_id, principal.user_id)
        staff = roles & STAFF_ROLES
        if not staff:
            return False
        disabled = {
            o.role for o in await self.directory.role_overrides(principal.org_id, course_id, permission)
            if not o.enabled
        }
        return bool(staff - disabled)

    async def _context(self, principal: Principal, context: ContextRef, right: str) -> bool:
        if context.kind is ContextKind.USER:
            return context.id == principal.user_id and right in ("read", "update", "manage_content", "manage_files_edit")

        if context.kind is ContextKind.COURSE:
            if right == "read":
                return bool(await self.directory.course_roles(principal.org_id, context.id, principal.user_id))
            if right in ("manage_content", "manage_files_edit"):
                return await self._course_permission(principal, context.id, right)
            return False

        # groups
        if await self.directory.is_group_member(principal.org_id, context.id, principal.user_id):
            return right in ("read", "update", "manage_content", "manage_files_edit")
        group = await self.directory.get_group(principal.org_id, context.id)
        if group is None or group.course_id is None:
            return False
        # course staff can see and manage their course's groups
        if right == "read":
            roles = await self.directory.course_roles(principal.org_id, group.course_id, principal.user_id)
            return bool(roles & STAFF_ROLES)
        if right in ("manage_content", "manage_files_edit"):
            return await self._course_permission(principal, group.course_id, right)
        return False

    async def _attachment(self, principal: Principal, att: Attachment, right: str) -> bool:
        context = att.context
        if right == "update":
            if context.kind is ContextKind.USER:
                return att.user_id == principal.user_id or context.id == principal.user_id
            return await self._context(principal, context, "manage_files_edit")
        if right == "read":
            if not await self._context(principal, context, "read"):
                return att.user_id is not None and att.user_id == principal.user_id
            if att.locked:
                return await self._attachment(principal, att, "update")
            return True
        return False

    async def _media_object(self, principal: Principal, mo: MediaObject, right: str) -> bool:
        context = mo.context
        if right == "read":
            if mo.user_id is not None and mo.user_id == principal.user_id:
                return True
            return await self._context(principal, context, "read")
        if right == "add_captions":
            if context.kind is ContextKind.USER:
                return context.id == principal.user_id or mo.user_id == principal.user_id
            return await self._context(principal, context, "manage_content")
        if right == "update":
            return mo.user_id is not None and mo.user_id == principal.user_id
        return False
