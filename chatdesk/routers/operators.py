"""Operator setup API: register and update widget configurations."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException, status

from ..errors import ConfigNotFoundError, ValidationFailure
from ..operators.schemas import OperatorConfig, OperatorRegistration
from ..operators.service import OperatorService
from ..runtime import ChatRuntime
from . import get_runtime

router = APIRouter(prefix="/api", tags=["operators"])


@contextmanager
def _service_context(runtime: ChatRuntime) -> Iterator[OperatorService]:
    try:
        yield runtime.operators
    except ConfigNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post(
    "/save-config",
    response_model=OperatorRegistration,
    status_code=status.HTTP_201_CREATED,
)
def save_config(
    payload: OperatorConfig, runtime: ChatRuntime = Depends(get_runtime)
) -> OperatorRegistration:
    with _service_context(runtime) as svc:
        return svc.register(payload)


@router.get("/config/{operator_id}", response_model=OperatorConfig)
def get_config(
    operator_id: str, runtime: ChatRuntime = Depends(get_runtime)
) -> OperatorConfig:
    with _service_context(runtime) as svc:
        return svc.get_config(operator_id)


@router.put("/config/{operator_id}", response_model=OperatorConfig)
def replace_config(
    operator_id: str,
    payload: OperatorConfig,
    runtime: ChatRuntime = Depends(get_runtime),
) -> OperatorConfig:
    with _service_context(runtime) as svc:
        return svc.replace_config(operator_id, payload)
