"""
User directory: sign-in registration, staff approval and membership changes.
"""

from datetime import date, datetime
from typing import Callable, Optional

from eventdesk.core.exceptions import ValidationError
from eventdesk.core.logging import get_logger
from eventdesk.domain.enums import UserStatus
from eventdesk.domain.records import User
from eventdesk.rowstore.repository import SheetRepository
from eventdesk.schemas.user import UserSignIn, UserUpdate
from eventdesk.services.admission_service import utcnow
from eventdesk.services.quota import WeeklyUsage, weekly_usage

logger = get_logger(__name__)


class UserDirectory:

    def __init__(self, repository: SheetRepository, clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.clock = clock

    async def sign_in(self, user_id: str, data: UserSignIn) -> tuple[User, bool]:
        """
        Return the existing account for this id, or create a pending one.
        The second element is True when a new account was created. An email
        already held by another account is rejected.
        """
        for user in await self.repository.list_users():
            if user.id == user_id:
                return user, False
            if user.email.lower() == data.email:
                raise ValidationError("Email already registered", details={"email": data.email})

        user = User(
            id=user_id,
            name=data.name,
            email=data.email,
            phone=data.phone,
            role=data.role,
            status=UserStatus.PENDING,
            membership_type=data.membership_type,
            created_at=self.clock(),
        )
        await self.repository.add_user(user)
        logger.info("user_registered", user_id=user.id, email=user.email, role=user.role.value)
        return user, True

    async def get_user(self, user_id: str) -> User:
        return await self.repository.get_user(user_id)

    async def list_users(self, status: Optional[UserStatus] = None) -> list[User]:
        users = await self.repository.list_users()
        if status is not None:
            users = [u for u in users if u.status == status]
        return users

    async def update_user(self, user_id: str, data: UserUpdate, updated_by: str) -> User:
        current = await self.repository.get_user(user_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise ValidationError("No changes supplied", details={"user_id": user_id})

        now = self.clock()
        changes["last_updated_at"] = now
        changes["last_updated_by"] = updated_by
        # First approval is stamped once
        if changes.get("status") == UserStatus.ACTIVE and current.status == UserStatus.PENDING:
            changes["approved_at"] = now
            changes["approved_by"] = updated_by

        updated = current.model_copy(update=changes)
        await self.repository.save_user(updated)
        logger.info(
            "user_updated",
            user_id=user_id,
            updated_by=updated_by,
            fields=sorted(k for k in changes if not k.startswith(("last_updated", "approved"))),
            status=updated.status.value,
        )
        return updated

    async def delete_user(self, user_id: str, deleted_by: str) -> None:
        await self.repository.delete_user(user_id)
        logger.info("user_deleted", user_id=user_id, deleted_by=deleted_by)

    async def quota_usage(self, user_id: str, on_date: date) -> WeeklyUsage:
        """Participant registrations counted against the week containing on_date."""
        user = await self.repository.get_user(user_id)
        return weekly_usage(
            user.id,
            user.membership_type,
            on_date,
            await self.repository.list_registrations(user_id=user.id),
            await self.repository.list_events(),
        )
