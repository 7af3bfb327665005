from fastapi import APIRouter, Depends, Response, status
from typing import Optional
from pydantic import BaseModel
from sqlmodel import select
import logging

from .auth import require_login
from .db import async_session
from .errors import api_error, not_found, permission_denied
from .models import Todo, TodoStatus, User
from .utils import now_utc, as_utc

logger = logging.getLogger(__name__)

router = APIRouter()


class TodoCreate(BaseModel):
    title: str
    description: Optional[str] = None
    status: TodoStatus = TodoStatus.IN_PROGRESS


class TodoUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TodoStatus] = None


class TodoStatusUpdate(BaseModel):
    status: TodoStatus


def _serialize_todo(todo: Todo) -> dict:
    created_at = as_utc(todo.created_at)
    updated_at = as_utc(todo.updated_at)
    return {
        "id": todo.id,
        "title": todo.title,
        "description": todo.description or "",
        "status": todo.status,
        "created_at": created_at.isoformat() if created_at else None,
        "updated_at": updated_at.isoformat() if updated_at else None,
        "user_id": todo.user_id,
    }


def _check_scope(user_id: str, current_user: User) -> None:
    # user_id must name the bearer
    if user_id != current_user.id:
        raise permission_denied("user_id does not match the authenticated user")


def _clean_title(title: Optional[str]) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise api_error(status.HTTP_422_UNPROCESSABLE_ENTITY, "constraint_violation", "title is required")
    return cleaned


async def _get_owned_todo(sess, todo_id: str, current_user: User) -> Optional[Todo]:
    todo = await sess.get(Todo, todo_id)
    if todo is not None and todo.user_id != current_user.id:
        logger.info('todo access denied todo_id=%s user_id=%s', todo_id, current_user.id)
        raise permission_denied()
    return todo


@router.get("/todos")
async def list_todos(user_id: str, current_user: User = Depends(require_login)):
    """Return the caller's todos, most recently created first."""
    _check_scope(user_id, current_user)
    async with async_session() as sess:
        q = await sess.exec(
            select(Todo)
            .where(Todo.user_id == current_user.id)
            .order_by(Todo.created_at.desc(), Todo.id.desc())
        )
        todos = q.all()
    logger.info('listed todos user_id=%s count=%d', current_user.id, len(todos))
    return [_serialize_todo(t) for t in todos]


@router.post("/todos")
async def create_todo(payload: TodoCreate, user_id: str, current_user: User = Depends(require_login)):
    _check_scope(user_id, current_user)
    title = _clean_title(payload.title)
    async with async_session() as sess:
        ts = now_utc()
        todo = Todo(
            title=title,
            description=payload.description or "",
            status=payload.status.value,
            user_id=current_user.id,
            created_at=ts,
            updated_at=ts,
        )
        sess.add(todo)
        await sess.commit()
        await sess.refresh(todo)
        todo_resp = _serialize_todo(todo)
    logger.info('created todo id=%s user_id=%s', todo_resp["id"], current_user.id)
    return todo_resp


@router.patch("/todos/{todo_id}")
async def update_todo(todo_id: str, payload: TodoUpdate, user_id: str, current_user: User = Depends(require_login)):
    """Update title, description and/or status; fields left out are kept."""
    _check_scope(user_id, current_user)
    async with async_session() as sess:
        todo = await _get_owned_todo(sess, todo_id, current_user)
        if todo is None:
            raise not_found("todo not found")
        if payload.title is not None:
            todo.title = _clean_title(payload.title)
        if payload.description is not None:
            todo.description = payload.description
        if payload.status is not None:
            todo.status = payload.status.value
        todo.updated_at = now_utc()
        sess.add(todo)
        await sess.commit()
        await sess.refresh(todo)
        return _serialize_todo(todo)


@router.patch("/todos/{todo_id}/status")
async def update_todo_status(todo_id: str, payload: TodoStatusUpdate, user_id: str, current_user: User = Depends(require_login)):
    _check_scope(user_id, current_user)
    async with async_session() as sess:
        todo = await _get_owned_todo(sess, todo_id, current_user)
        if todo is None:
            raise not_found("todo not found")
        todo.status = payload.status.value
        todo.updated_at = now_utc()
        sess.add(todo)
        await sess.commit()
        await sess.refresh(todo)
        return _serialize_todo(todo)


@router.delete("/todos/{todo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_todo(todo_id: str, user_id: str, current_user: User = Depends(require_login)):
    """Delete a todo. Deleting an id that does not exist is a no-op."""
    _check_scope(user_id, current_user)
    async with async_session() as sess:
        todo = await _get_owned_todo(sess, todo_id, current_user)
        if todo is not None:
            await sess.delete(todo)
            await sess.commit()
            logger.info('deleted todo id=%s user_id=%s', todo_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
