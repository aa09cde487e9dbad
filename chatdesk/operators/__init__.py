"""Operator configuration resolver."""

from . import schemas
from .schemas import AlertPreference, OperatorConfig, ResponseLength, SmsMode, Tone
from .service import OperatorService, generate_operator_id
from .store import FileConfigStore, OperatorConfigStore, SqlAlchemyConfigStore

__all__ = [
    "AlertPreference",
    "FileConfigStore",
    "OperatorConfig",
    "OperatorConfigStore",
    "OperatorService",
    "ResponseLength",
    "SmsMode",
    "SqlAlchemyConfigStore",
    "Tone",
    "generate_operator_id",
    "schemas",
]
