"""Task persistence on top of a SQLAlchemy session."""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import asc, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.task import Task

logger = logging.getLogger(__name__)

# sortBy field names accepted by list_for_owner, camelCase aliases included
SORTABLE_FIELDS = {
    "id": Task.id,
    "description": Task.description,
    "completed": Task.completed,
    "created_at": Task.created_at,
    "createdAt": Task.created_at,
    "updated_at": Task.updated_at,
    "updatedAt": Task.updated_at,
}


class TaskRepository:
    """Queries and writes for Task rows, always within one session."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, owner: int, data: Dict[str, Any]) -> Task:
        task = Task(owner=owner, **data)
        self.db.add(task)
        self._commit()
        self.db.refresh(task)
        return task

    def list_for_owner(
        self,
        owner: int,
        completed: Optional[bool] = None,
        sort: Optional[Tuple[str, bool]] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
    ) -> List[Task]:
        """
        Tasks belonging to ``owner``.

        Args:
            owner: Caller id
            completed: Exact match on ``completed`` when not None
            sort: ``(field, descending)``; unknown fields are ignored
            limit: Maximum rows, None for no limit
            skip: Rows to skip, None for none

        Returns:
            list: Matching tasks, creation order unless ``sort`` applies
        """
        query = self.db.query(Task).filter(Task.owner == owner)

        if completed is not None:
            query = query.filter(Task.completed == completed)

        if sort is not None:
            field, descending = sort
            column = SORTABLE_FIELDS.get(field)
            if column is not None:
                query = query.order_by(desc(column) if descending else asc(column))

        # Creation order breaks ties and is the default order
        query = query.order_by(asc(Task.created_at))

        if skip:
            query = query.offset(skip)
        if limit:
            query = query.limit(limit)

        return query.all()

    def get_for_owner(self, task_id: str, owner: int) -> Optional[Task]:
        return self.db.query(Task).filter(
            Task.id == task_id, Task.owner == owner
        ).first()

    def get_by_id(self, task_id: str) -> Optional[Task]:
        return self.db.get(Task, task_id)

    def save(self, task: Task) -> Task:
        self.db.add(task)
        self._commit()
        self.db.refresh(task)
        return task

    def delete(self, task: Task) -> None:
        self.db.delete(task)
        self._commit()

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database commit failed: {e}")
            self.db.rollback()
            raise
