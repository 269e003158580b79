# rollcall/crud/base.py
import logging
from typing import TypeVar, Generic, Type, Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rollcall.core.errors import StorageUnavailable
from rollcall.db.base import Base

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)

class CRUDBase(Generic[ModelType]):
    def __init__(self, model: Type[ModelType]): self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        try:
            return db.get(self.model, id)
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)

    def _commit(self, db: Session) -> None:
        """Commit; IntegrityError propagates, anything else becomes StorageUnavailable."""
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)

    def _unavailable(self, db: Session, exc: SQLAlchemyError) -> StorageUnavailable:
        logger.error("storage failure on %s", self.model.__tablename__, exc_info=exc)
        try:
            db.rollback()
        except SQLAlchemyError:
            logger.warning("rollback after storage failure also failed", exc_info=True)
        return StorageUnavailable(table=self.model.__tablename__)
