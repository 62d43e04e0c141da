import uuid
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from lms_media.modules.directory.models import Course, Group, Enrollment, GroupMembership, RoleOverride

class DirectoryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_course(self, org_id: uuid.UUID, course_id: uuid.UUID) -> Course | None:
        q = select(Course).where(Course.id == course_id, Course.org_id == org_id, Course.deleted_at.is_(None))
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_group(self, org_id: uuid.UUID, group_id: uuid.UUID) -> Group | None:
        q = select(Group).where(Group.id == group_id, Group.org_id == org_id, Group.deleted_at.is_(None))
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def course_roles(self, org_id: uuid.UUID, course_id: uuid.UUID, user_id: uuid.UUID) -> set[str]:
        q = select(Enrollment.role).where(
            Enrollment.org_id == org_id,
            Enrollment.course_id == course_id,
            Enrollment.user_id == user_id,
            Enrollment.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return set(res.scalars().all())

    async def is_group_member(self, org_id: uuid.UUID, group_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        q = select(GroupMembership.id).where(
            GroupMembership.org_id == org_id,
            GroupMembership.group_id == group_id,
            GroupMembership.user_id == user_id,
            GroupMembership.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.first() is not None

    async def role_overrides(self, org_id: uuid.UUID, course_id: uuid.UUID, permission: str) -> Sequence[RoleOverride]:
        q = select(RoleOverride).where(
            RoleOverride.org_id == org_id,
            RoleOverride.course_id == course_id,
            RoleOverride.permission == permission,
            RoleOverride.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalars().all()
