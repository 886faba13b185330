"""
Instance repository.
"""
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError

from chathub.core.errors import DuplicateInstanceNameError
from chathub.core.logging import get_logger
from chathub.models.chat import Chat
from chathub.models.contact import Contact
from chathub.models.instance import Instance, InstanceStatus
from chathub.models.message import Message
from chathub.models.mixins import utcnow
from chathub.models.user import User
from chathub.repositories.base import BaseRepository
from chathub.schemas.entities import InstanceCreate, InstanceRead, InstanceStats, InstanceUpdate

logger = get_logger(__name__)


class InstanceRepository(BaseRepository[Instance]):
    """
    Instances are keyed by an integer id but identified by the provider
    through their unique name. Name uniqueness is checked before writes so
    callers get ``DuplicateInstanceNameError`` rather than a store error;
    the unique index still guards the race between check and insert.
    """

    model = Instance
    search_columns = ("name",)

    def get_by_name(self, name: str) -> Optional[Instance]:
        return self.db.scalars(select(Instance).where(Instance.name == name)).first()

    def names_for_user(self, user_id: int) -> List[str]:
        stmt = select(Instance.name).where(Instance.user_id == user_id).order_by(Instance.name)
        return list(self.db.scalars(stmt).all())

    def get_all_with_stats(self, user_id: Optional[int] = None) -> List[InstanceStats]:
        """Instances newest first, with owner name and dependent row counts."""
        chat_count = (
            select(func.count(Chat.id)).where(Chat.owner == Instance.name)
            .correlate(Instance).scalar_subquery()
        )
        message_count = (
            select(func.count(Message.id)).where(Message.owner == Instance.name)
            .correlate(Instance).scalar_subquery()
        )
        contact_count = (
            select(func.count(Contact.id)).where(Contact.owner == Instance.name)
            .correlate(Instance).scalar_subquery()
        )

        stmt = (
            select(
                Instance,
                User.name.label("owner_name"),
                chat_count.label("chat_count"),
                message_count.label("message_count"),
                contact_count.label("contact_count"),
            )
            .outerjoin(User, User.id == Instance.user_id)
            .order_by(Instance.id.desc())
        )
        if user_id is not None:
            stmt = stmt.where(Instance.user_id == user_id)

        return [
            InstanceStats(
                **InstanceRead.model_validate(row.Instance).model_dump(),
                owner_name=row.owner_name,
                chat_count=row.chat_count or 0,
                message_count=row.message_count or 0,
                contact_count=row.contact_count or 0,
            )
            for row in self.db.execute(stmt).all()
        ]

    def create(self, fields: InstanceCreate) -> Instance:
        if self.get_by_name(fields.name) is not None:
            raise DuplicateInstanceNameError(fields.name)

        instance = Instance(
            name=fields.name,
            user_id=fields.user_id,
            status=InstanceStatus.coerce(fields.status).value,
        )
        self.db.add(instance)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateInstanceNameError(fields.name)

        logger.info(
            "Instance created",
            extra={"extra_data": {"instance": fields.name, "user_id": fields.user_id}},
        )
        return self.get_by_id(instance.id)

    def update(self, id_: int, fields: InstanceUpdate) -> Optional[Instance]:
        if "name" in fields.model_fields_set and fields.name:
            existing = self.get_by_name(fields.name)
            if existing is not None and existing.id != id_:
                raise DuplicateInstanceNameError(fields.name)
        try:
            return super().update(id_, fields)
        except IntegrityError:
            self.db.rollback()
            raise DuplicateInstanceNameError(fields.name)

    def update_status_by_name(self, name: str, status) -> bool:
        """Store the provider connection state; False when no such instance."""
        result = self.db.execute(
            sa_update(Instance)
            .where(Instance.name == name)
            .values(status=InstanceStatus.coerce(status).value, updated_at=utcnow())
        )
        self.db.commit()
        return result.rowcount > 0
