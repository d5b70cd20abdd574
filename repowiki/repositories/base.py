"""Primary-key lookups and bulk deletes shared by the data-access classes."""

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Query, Session

from ..database import Base
from ..exceptions import RepoWikiException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Queries over one model keyed by a string ``id`` column.

    Subclasses set ``model_class`` and ``not_found_error`` (raised by
    ``get_by_id`` with the missing id).
    """

    model_class: Type[ModelT]
    not_found_error: Type[RepoWikiException]

    def __init__(self, db: Session):
        self.db = db

    def query(self) -> Query:
        return self.db.query(self.model_class)

    def find(self, entity_id: str) -> Optional[ModelT]:
        # Always hits the database: rows removed by delete_where() may still
        # sit in the session's identity map.
        return self.query().filter(self.model_class.id == entity_id).first()

    def get_by_id(self, entity_id: str) -> ModelT:
        entity = self.find(entity_id)
        if entity is None:
            raise self.not_found_error(entity_id)
        return entity

    def delete_where(self, *criteria) -> int:
        """Delete matching rows without loading them. The caller commits."""
        return self.query().filter(*criteria).delete(synchronize_session=False)
