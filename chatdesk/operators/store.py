"""Operator configuration stores."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from ..errors import ConfigNotFoundError, ValidationFailure
from ..models import Operator
from ..models.session import session_scope
from .schemas import OperatorConfig

logger = logging.getLogger(__name__)

_OPERATOR_ID_RE = re.compile(r"^[a-z0-9]{4,32}$")


def validate_operator_id(operator_id: str | None) -> str:
    """Return ``operator_id`` or raise :class:`ValidationFailure`."""

    if not operator_id or not _OPERATOR_ID_RE.match(operator_id):
        raise ValidationFailure("operatorId is missing or malformed")
    return operator_id


class OperatorConfigStore(Protocol):
    """Persistence abstraction for operator configuration."""

    def get(self, operator_id: str) -> OperatorConfig: ...

    def put(self, operator_id: str, config: OperatorConfig) -> None: ...

    def exists(self, operator_id: str) -> bool: ...


class FileConfigStore:
    """Store each operator's configuration as ``<config_dir>/<id>.json``."""

    def __init__(self, config_dir: str) -> None:
        self._config_dir = config_dir

    def _path(self, operator_id: str) -> str:
        return os.path.join(self._config_dir, f"{validate_operator_id(operator_id)}.json")

    def exists(self, operator_id: str) -> bool:
        return os.path.exists(self._path(operator_id))

    def get(self, operator_id: str) -> OperatorConfig:
        path = self._path(operator_id)
        if not os.path.exists(path):
            raise ConfigNotFoundError(operator_id)
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
        return OperatorConfig.model_validate(raw)

    def put(self, operator_id: str, config: OperatorConfig) -> None:
        os.makedirs(self._config_dir, exist_ok=True)
        path = self._path(operator_id)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as fh:
            json.dump(config.model_dump(mode="json", by_alias=True), fh, indent=2)
        os.replace(tmp_path, path)
        logger.info("Saved config for operator %s", operator_id)


class SqlAlchemyConfigStore:
    """Keep operator configuration in the ``chat_operators`` table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def exists(self, operator_id: str) -> bool:
        with session_scope(self._session_factory) as session:
            return session.get(Operator, operator_id) is not None

    def get(self, operator_id: str) -> OperatorConfig:
        with session_scope(self._session_factory) as session:
            row = session.get(Operator, operator_id)
            if row is None:
                raise ConfigNotFoundError(operator_id)
            raw = dict(row.config or {})
        return OperatorConfig.model_validate(raw)

    def put(self, operator_id: str, config: OperatorConfig) -> None:
        validate_operator_id(operator_id)
        payload = config.model_dump(mode="json", by_alias=True)
        with session_scope(self._session_factory) as session:
            row = session.get(Operator, operator_id)
            if row is None:
                session.add(Operator(id=operator_id, config=payload))
            else:
                row.config = payload
        logger.info("Saved config for operator %s", operator_id)
