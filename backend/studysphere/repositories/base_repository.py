# backend/studysphere/repositories/base_repository.py
"""
Base Repository Pattern for StudySphere

Shared lookup, insert and pagination for the session, request and payment
repositories. Repositories never commit; the service layer owns the
transaction and turns ``RepositoryException`` into ``ServiceException``.
"""

import logging
from typing import Any, Generic, List, Optional, Tuple, Type, TypeVar, cast

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Data access common to every StudySphere table.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.query(self.model).filter(self.model.id == id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """
        Insert a row and flush so its ULID and defaults are populated.

        Does not commit.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.error("Integrity error creating %s: %s", self.model.__name__, exc)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding {self.model.__name__} by {sorted(kwargs)}: {str(e)}")
            raise RepositoryException(f"Failed to find {self.model.__name__}: {str(e)}")

    def party_query(
        self,
        *,
        tutor_id: Optional[str] = None,
        student_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Query:
        """Rows of one tutor and/or student; None means no filter on that column."""
        query = self.db.query(self.model)
        if tutor_id:
            query = query.filter(self.model.tutor_id == tutor_id)
        if student_id:
            query = query.filter(self.model.student_id == student_id)
        if status:
            query = query.filter(self.model.status == status)
        return query

    def paginate(self, query: Query, order_by: Any, skip: int, limit: int) -> Tuple[List[T], int]:
        """
        Returns:
            (page of rows, total matching before the page is cut)
        """
        try:
            total = query.count()
            items = query.order_by(order_by).offset(skip).limit(limit).all()
            return cast(List[T], items), total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to list {self.model.__name__}: {str(e)}")
