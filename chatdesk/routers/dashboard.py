"""Operator dashboard API routes."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..conversations import schemas
from ..conversations.dashboard import DashboardSync
from ..conversations.models import ConversationStatus
from ..errors import ConversationNotFoundError, ValidationFailure
from ..operators.store import validate_operator_id
from ..runtime import ChatRuntime
from . import get_runtime

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@contextmanager
def _service_context(runtime: ChatRuntime) -> Iterator[DashboardSync]:
    try:
        yield runtime.dashboard
    except ConversationNotFoundError as exc:
        raise HTTPException(
            status_code=404,
            detail={"error": "conversation_not_found", "message": str(exc)},
        ) from exc
    except ValidationFailure as exc:
        raise HTTPException(
            status_code=400,
            detail={"error": "validation_failed", "message": str(exc)},
        ) from exc


@router.get("/{operator_id}/conversations", response_model=schemas.ConversationList)
def list_conversations(
    operator_id: str,
    status_filter: Optional[ConversationStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    runtime: ChatRuntime = Depends(get_runtime),
) -> schemas.ConversationList:
    with _service_context(runtime) as svc:
        return svc.list_conversations(
            validate_operator_id(operator_id),
            status=status_filter,
            limit=limit,
            offset=offset,
        )


@router.get("/conversations/{conversation_id}", response_model=schemas.ConversationDetail)
def get_conversation(
    conversation_id: int, runtime: ChatRuntime = Depends(get_runtime)
) -> schemas.ConversationDetail:
    with _service_context(runtime) as svc:
        return svc.get_conversation_detail(conversation_id)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=schemas.OperatorMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_operator_message(
    conversation_id: int,
    payload: schemas.OperatorMessageRequest,
    runtime: ChatRuntime = Depends(get_runtime),
) -> schemas.OperatorMessageResponse:
    with _service_context(runtime) as svc:
        return svc.send_operator_message(conversation_id, payload.text)


@router.patch(
    "/conversations/{conversation_id}/status",
    response_model=schemas.ConversationRecord,
)
def set_status(
    conversation_id: int,
    payload: schemas.StatusUpdateRequest,
    runtime: ChatRuntime = Depends(get_runtime),
) -> schemas.ConversationRecord:
    with _service_context(runtime) as svc:
        return svc.set_status(conversation_id, payload.status)
