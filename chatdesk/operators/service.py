"""Operator registration and configuration lookup."""

from __future__ import annotations

import logging
import secrets
import string

from .schemas import OperatorConfig, OperatorRegistration
from .store import OperatorConfigStore, validate_operator_id

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
OPERATOR_ID_LENGTH = 7


def generate_operator_id(length: int = OPERATOR_ID_LENGTH) -> str:
    """Return a short random base-36 token."""

    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


class OperatorService:
    """Create operators and resolve their configuration."""

    def __init__(self, store: OperatorConfigStore, *, max_id_attempts: int = 10) -> None:
        self._store = store
        self._max_id_attempts = max_id_attempts

    def register(self, config: OperatorConfig) -> OperatorRegistration:
        for _ in range(self._max_id_attempts):
            operator_id = generate_operator_id()
            if not self._store.exists(operator_id):
                break
        else:
            raise RuntimeError("Could not allocate a unique operator id")
        self._store.put(operator_id, config)
        logger.info("Registered operator %s", operator_id)
        return OperatorRegistration(operator_id=operator_id)

    def get_config(self, operator_id: str) -> OperatorConfig:
        return self._store.get(validate_operator_id(operator_id))

    def replace_config(self, operator_id: str, config: OperatorConfig) -> OperatorConfig:
        # Raises ConfigNotFoundError for unknown operators; replace never creates.
        self._store.get(validate_operator_id(operator_id))
        self._store.put(operator_id, config)
        return config
