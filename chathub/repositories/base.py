"""
Shared CRUD behaviour for the entity repositories.
"""
from typing import Any, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import delete as sa_delete
from sqlalchemy import func, or_, select
from sqlalchemy import update as sa_update
from sqlalchemy.orm import Session

from chathub.core.errors import StoreUnavailableError
from chathub.core.logging import get_logger
from chathub.models.mixins import utcnow

logger = get_logger(__name__)

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    """
    CRUD over one mapped model with upsert-by-primary-key semantics.

    Subclasses set ``model`` and may override ``default_order``,
    ``page_order`` and ``search_columns``. Every write commits and then re-reads the row, so
    callers always get what is actually stored, including defaults.
    """

    model: Type[ModelT]
    search_columns: Sequence[str] = ()

    def __init__(self, db: Optional[Session]):
        if db is None:
            raise StoreUnavailableError()
        self.db = db

    @property
    def pk(self):
        return self.model.id

    def default_order(self) -> list:
        return [self.pk.asc()]

    def page_order(self) -> list:
        return self.default_order()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all(self) -> List[ModelT]:
        stmt = select(self.model).order_by(*self.default_order())
        return list(self.db.scalars(stmt).all())

    def get_by_id(self, id_: Any) -> Optional[ModelT]:
        return self.db.get(self.model, id_, populate_existing=True)

    def page(
        self,
        owners: Optional[Sequence[str]] = None,
        search: Optional[str] = None,
        start: int = 0,
        length: int = 10,
    ) -> Tuple[int, int, List[ModelT]]:
        """
        One page of rows for the admin data tables.

        ``owners`` restricts rows to the given instance names (``None`` means
        every instance). Returns ``(records_total, records_filtered, rows)``
        where the total ignores the search term. ``length`` < 0 returns all
        remaining rows.
        """
        base = select(self.model)
        if owners is not None:
            base = base.where(self.model.owner.in_(list(owners)))

        records_total = self._count(base)

        filtered = base
        if search and self.search_columns:
            pattern = f"%{search}%"
            filtered = filtered.where(
                or_(*(getattr(self.model, column).ilike(pattern) for column in self.search_columns))
            )
        records_filtered = self._count(filtered) if search else records_total

        stmt = filtered.order_by(*self.page_order()).offset(max(start, 0))
        if length is not None and length >= 0:
            stmt = stmt.limit(length)

        return records_total, records_filtered, list(self.db.scalars(stmt).all())

    def _count(self, stmt) -> int:
        return self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, fields: BaseModel) -> ModelT:
        """Insert the row, or overwrite every column but created_at if the id exists."""
        values = fields.model_dump(mode="json")
        self._upsert(values)
        return self.get_by_id(values["id"])

    def update(self, id_: Any, fields: BaseModel) -> Optional[ModelT]:
        """Write only the explicitly supplied fields and refresh updated_at."""
        values = fields.model_dump(mode="json", exclude_unset=True)
        values["updated_at"] = utcnow()

        result = self.db.execute(
            sa_update(self.model).where(self.pk == id_).values(**values)
        )
        self.db.commit()

        if result.rowcount == 0:
            return None
        return self.get_by_id(id_)

    def delete(self, id_: Any) -> bool:
        result = self.db.execute(sa_delete(self.model).where(self.pk == id_))
        self.db.commit()
        return result.rowcount > 0

    def _upsert(self, values: dict) -> None:
        dialect = self.db.get_bind().dialect.name

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            self.db.merge(self.model(**values, updated_at=utcnow()))
            self.db.commit()
            return

        stmt = insert(self.model).values(**values)
        overwrite = {
            column: stmt.excluded[column]
            for column in values
            if column != "id"
        }
        overwrite["updated_at"] = utcnow()
        stmt = stmt.on_conflict_do_update(index_elements=["id"], set_=overwrite)

        self.db.execute(stmt)
        self.db.commit()
