"""
Utility functions for the application.
"""
from datetime import datetime, timezone
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel

T = TypeVar('T', bound=BaseModel)


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def model_to_schema(db_model: Any, schema_class: Type[T]) -> T:
    """
    Convert a SQLAlchemy model instance to a Pydantic schema instance.

    Args:
        db_model: SQLAlchemy model instance
        schema_class: Pydantic schema class

    Returns:
        Instance of the Pydantic schema
    """
    return schema_class.model_validate(db_model, from_attributes=True)


def models_to_schemas(db_models: List[Any], schema_class: Type[T]) -> List[T]:
    """Convert a list of SQLAlchemy models to Pydantic schemas."""
    return [model_to_schema(model, schema_class) for model in db_models]


def parse_quantity(raw: Any) -> int:
    """
    Parse a quantity as sent by Square (a decimal string such as "9" or "2.0").

    Missing or non-numeric values count as 0. Fractions are truncated.
    """
    if raw is None:
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return 0
