"""Customer-facing chat API: messages, contact details and polling."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..conversations import schemas
from ..conversations.models import make_session_key
from ..conversations.responder import FALLBACK_REPLY
from ..conversations.service import validate_session_id
from ..errors import ConfigNotFoundError, ValidationFailure
from ..operators.store import validate_operator_id
from ..rate_limit import chat_rate_limit, limiter
from ..runtime import ChatRuntime
from . import get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

SERVICE_NOT_FOUND = "Service not found"


@router.post("/chat", response_model=schemas.ChatReply)
@limiter.limit(chat_rate_limit)
def chat(
    request: Request,
    payload: schemas.ChatRequest,
    runtime: ChatRuntime = Depends(get_runtime),
) -> schemas.ChatReply:
    """Answer one customer message.

    Unknown operators yield 404 and malformed input 400; any other failure is
    logged and answered with the fixed fallback reply.
    """
    try:
        return runtime.chat.handle_message(
            payload.operator_id, payload.session_id, payload.message
        )
    except ConfigNotFoundError as exc:
        raise HTTPException(status_code=404, detail=SERVICE_NOT_FOUND) from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception:
        logger.exception(
            "Chat handling failed for operator %s session %s",
            payload.operator_id,
            payload.session_id,
        )
        return schemas.ChatReply(response=FALLBACK_REPLY)


@router.post("/contact-info", response_model=schemas.ContactResponse)
@limiter.limit(chat_rate_limit)
def contact_info(
    request: Request,
    payload: schemas.ContactRequest,
    runtime: ChatRuntime = Depends(get_runtime),
) -> schemas.ContactResponse:
    try:
        return runtime.chat.submit_contact(
            payload.operator_id,
            payload.session_id,
            email=payload.email,
            phone=payload.phone,
        )
    except ConfigNotFoundError as exc:
        raise HTTPException(status_code=404, detail=SERVICE_NOT_FOUND) from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get(
    "/chat/{operator_id}/{session_id}/messages", response_model=schemas.PollResponse
)
def poll_messages(
    operator_id: str,
    session_id: str,
    last_count: int = Query(0, alias="lastCount", ge=0),
    runtime: ChatRuntime = Depends(get_runtime),
) -> schemas.PollResponse:
    """Operator/system messages the widget has not shown yet; never blocks."""
    try:
        operator_id = validate_operator_id(operator_id)
        session_id = validate_session_id(session_id, runtime.settings.session_id_max_length)
        return runtime.dashboard.poll_messages(
            make_session_key(operator_id, session_id), last_count
        )
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
