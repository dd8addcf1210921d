"""Domain layer for shop-stats-service."""
from .types import (
    BUCKET_FIELD,
    BUCKET_SLOT,
    CONDITION_SLOT,
    DATE_GROUP_TYPES,
    DEFAULT_DATE_COLUMN,
    DEFAULT_DATE_GROUP_TYPE,
    VALUE_FIELD,
    DateGroupType,
    ErrorCode,
    GroupSource,
    TranslationKey,
    WarningKind,
)

__all__ = ["BUCKET_FIELD", "BUCKET_SLOT", "CONDITION_SLOT", "DATE_GROUP_TYPES", "DEFAULT_DATE_COLUMN",
           "DEFAULT_DATE_GROUP_TYPE", "VALUE_FIELD", "DateGroupType", "ErrorCode", "GroupSource",
           "TranslationKey", "WarningKind"]
