"""
Turn raw payloads into validated models, raising the domain ValidationError.

Used wherever data enters persistence outside FastAPI's own body parsing
(draft merges, history snapshots, the CLI), so a bad field blocks the save
instead of reaching the store.
"""

from typing import Any, TypeVar
from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from ..core.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def field_errors(exc: PydanticValidationError) -> list[dict]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]


def validate_model(model: type[ModelT], data: Any) -> ModelT:
    if isinstance(data, model):
        data = data.model_dump()
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errors = field_errors(exc)
        logger.warning("Validation failed", model=model.__name__, errors=errors)
        raise ValidationError(f"Invalid {model.__name__} data", errors=errors, model=model.__name__) from exc
