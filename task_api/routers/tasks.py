import logging
import re
from typing import Any, Dict, List, Optional, Tuple
from fastapi import APIRouter, Body, Depends, File, Query, Request, Response, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.auth import get_current_user, CurrentUser
from ..core.database import get_db
from ..core.exceptions import (
    InvalidUpdateError, PersistenceError, TaskNotFoundError, TaskValidationError,
    UploadError, describe_validation_errors
)
from ..repositories.task_repository import TaskRepository
from ..schemas.task import ALLOWED_UPDATES, ErrorResponse, TaskCreate, TaskResponse, TaskUpdate
from ..services.images import ImageTranscoder, PNG_MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter()

_COUNT_PATTERN = re.compile(r"[0-9]+")


def get_task_repository(db: Session = Depends(get_db)) -> TaskRepository:
    return TaskRepository(db)


def get_image_transcoder(request: Request) -> ImageTranscoder:
    return request.app.state.image_transcoder


def parse_sort(sort_by: Optional[str]) -> Optional[Tuple[str, bool]]:
    """Turn ``field:direction`` into ``(field, descending)``."""
    if not sort_by:
        return None
    field, _, direction = sort_by.partition(":")
    return field, direction == "desc"


def parse_count(value: Optional[str]) -> Optional[int]:
    """Non-negative integer from a query value, None when absent or malformed."""
    if value is None or not _COUNT_PATTERN.fullmatch(value):
        return None
    return int(value)


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}}
)
def create_task(
    task_data: TaskCreate,
    current_user: CurrentUser = Depends(get_current_user),
    repository: TaskRepository = Depends(get_task_repository)
):
    """Create a new task for the authenticated user"""
    try:
        task = repository.create(current_user.user_id, task_data.model_dump())
    except SQLAlchemyError:
        raise TaskValidationError("Unable to create task")

    logger.info(f"Task {task.id} created for user {current_user.user_id}")
    return task


# GET /tasks?completed=true
# GET /tasks?limit=10&skip=20
# GET /tasks?sortBy=createdAt:desc
@router.get("", response_model=List[TaskResponse])
def get_tasks(
    completed: Optional[str] = Query(None, description="Only tasks with this completion state ('true' or other)"),
    limit: Optional[str] = Query(None, description="Maximum number of tasks to return"),
    skip: Optional[str] = Query(None, description="Number of tasks to skip"),
    sort_by: Optional[str] = Query(None, alias="sortBy", description="field:asc or field:desc"),
    current_user: CurrentUser = Depends(get_current_user),
    repository: TaskRepository = Depends(get_task_repository)
):
    """Get tasks for the authenticated user with filtering, sorting and pagination"""
    match = None
    if completed:
        match = completed == "true"

    try:
        return repository.list_for_owner(
            current_user.user_id,
            completed=match,
            sort=parse_sort(sort_by),
            limit=parse_count(limit),
            skip=parse_count(skip)
        )
    except SQLAlchemyError:
        raise PersistenceError()


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    repository: TaskRepository = Depends(get_task_repository)
):
    """Get a specific task by ID"""
    try:
        task = repository.get_for_owner(task_id, current_user.user_id)
    except SQLAlchemyError:
        raise PersistenceError()

    if not task:
        raise TaskNotFoundError()

    return task


@router.patch(
    "/{task_id}",
    response_model=TaskResponse,
    responses={400: {"model": ErrorResponse}}
)
def update_task(
    task_id: str,
    payload: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    repository: TaskRepository = Depends(get_task_repository)
):
    """Update the description and/or completion state of a task"""
    if any(key not in ALLOWED_UPDATES for key in payload):
        raise InvalidUpdateError()

    try:
        task_update = TaskUpdate.model_validate(payload)
    except ValidationError as e:
        raise TaskValidationError(describe_validation_errors(e.errors()))

    try:
        task = repository.get_for_owner(task_id, current_user.user_id)
        if not task:
            raise TaskNotFoundError()

        for field, value in task_update.model_dump(exclude_unset=True).items():
            setattr(task, field, value)

        return repository.save(task)
    except SQLAlchemyError:
        raise TaskValidationError("Unable to update task")


@router.delete(
    "/{task_id}",
    response_model=TaskResponse,
    responses={500: {"model": ErrorResponse}}
)
def delete_task(
    task_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    repository: TaskRepository = Depends(get_task_repository)
):
    """Delete a task and return it"""
    try:
        task = repository.get_for_owner(task_id, current_user.user_id)
        if not task:
            raise TaskNotFoundError()

        deleted = TaskResponse.model_validate(task)
        repository.delete(task)
    except SQLAlchemyError:
        raise PersistenceError("Unable to delete task")

    logger.info(f"Task {task_id} deleted by user {current_user.user_id}")
    return deleted


@router.post(
    "/{task_id}/image",
    response_class=Response,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
def upload_task_image(
    task_id: str,
    image: UploadFile = File(..., description="jpg, jpeg, png or svg file"),
    current_user: CurrentUser = Depends(get_current_user),
    repository: TaskRepository = Depends(get_task_repository),
    transcoder: ImageTranscoder = Depends(get_image_transcoder)
):
    """Attach an image to a task; it is stored as PNG"""
    transcoder.check_filename(image.filename)
    # One byte past the limit is enough to know the file is too large
    data = image.file.read(transcoder.max_size + 1)
    transcoder.check_size(data)
    png = transcoder.to_png(data, image.filename)

    try:
        task = repository.get_for_owner(task_id, current_user.user_id)
        if not task:
            raise TaskNotFoundError("Task not found!")

        task.image = png
        repository.save(task)
    except SQLAlchemyError:
        raise UploadError("Unable to save image")

    return Response(status_code=status.HTTP_200_OK)


@router.delete(
    "/{task_id}/image",
    response_class=Response,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
def delete_task_image(
    task_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    repository: TaskRepository = Depends(get_task_repository)
):
    """Remove the image attached to a task"""
    try:
        task = repository.get_for_owner(task_id, current_user.user_id)
        if not task:
            raise TaskNotFoundError("Task not found!")

        task.image = None
        repository.save(task)
    except SQLAlchemyError:
        raise UploadError("Unable to remove image")

    return Response(status_code=status.HTTP_200_OK)


@router.get("/{task_id}/image", response_class=Response)
def get_task_image(
    task_id: str,
    repository: TaskRepository = Depends(get_task_repository)
):
    """Serve a task's image. Public: no authentication required"""
    try:
        task = repository.get_by_id(task_id)
    except SQLAlchemyError as e:
        logger.error(f"Image lookup for task {task_id} failed: {e}")
        task = None

    if not task or not task.image:
        return Response(status_code=status.HTTP_404_NOT_FOUND)

    return Response(content=task.image, media_type=PNG_MEDIA_TYPE)
