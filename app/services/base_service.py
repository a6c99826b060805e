# File: app/services/base_service.py

from typing import TypeVar, Generic, Optional, Type, Any
from contextlib import contextmanager
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import DatabaseException, EntityNotFoundException
from app.repositories.base_repository import BaseRepository

T = TypeVar("T")
logger = logging.getLogger(__name__)


class BaseService(Generic[T]):
    """
    Base service for the expense documentation services.

    Provides common functionality including:
    - Transaction management
    - Translation of driver errors into DatabaseException
    - Basic lookups through the service's main repository
    """

    entity_name = "Entity"

    def __init__(
        self,
        session: Session,
        repository_class: Optional[Type[BaseRepository]] = None,
        repository: Optional[BaseRepository] = None,
    ):
        """
        Initialize service with dependencies.

        Args:
            session: Database session for persistence operations
            repository_class: Repository class to instantiate (optional if repository is provided)
            repository: Repository instance (optional if repository_class is provided)
        """
        self.session = session

        # Allow either repository instance or class to be provided
        if repository is not None:
            self.repository = repository
        elif repository_class is not None:
            self.repository = repository_class(session)
        else:
            # Subclasses may initialize repository directly
            self.repository = None

    @contextmanager
    def transaction(self):
        """
        Provide a transactional scope around operations.

        Commits on success. On any error the session is rolled back; SQLAlchemy
        errors are re-raised as DatabaseException carrying the driver message
        verbatim, everything else propagates unchanged.

        Yields:
            None
        """
        try:
            yield
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Transaction failed: {str(e)}", exc_info=True)
            raise DatabaseException(
                str(getattr(e, "orig", None) or e),
                entity_type=self.entity_name,
                details={"error_type": type(e).__name__},
            ) from e
        except Exception as e:
            self.session.rollback()
            logger.error(f"Transaction failed: {str(e)}")
            raise

    def get_or_404(self, id: str) -> T:
        """
        Get an entity by ID or raise EntityNotFoundException.

        Args:
            id: Entity ID to retrieve

        Returns:
            The entity
        """
        entity = self.repository.get_by_id(id)
        if entity is None:
            raise EntityNotFoundException(self.entity_name, id)
        return entity

    def _write(self, operation, *args: Any, **kwargs: Any) -> Any:
        """Run a committing repository call, translating driver errors."""
        try:
            return operation(*args, **kwargs)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"{self.entity_name} write failed: {str(e)}")
            raise DatabaseException(
                str(getattr(e, "orig", None) or e),
                entity_type=self.entity_name,
                details={"error_type": type(e).__name__},
            ) from e
