"""Request validation helpers for route handlers."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from ..errors import PipeValidationError

T = TypeVar("T")


def validate_body_or_params(body_or_params: Any, schema: type[T]) -> T:
    """Validate a request body (or params) against a schema.

    `schema` is a pydantic model or any type pydantic can validate.
    Returns the parsed value. If it is not valid, raises a bad request
    Pipe error listing each issue with its location.

    Usage:
        class CreateAgreement(BaseModel):
            offer_id: int
            deposit: int

        async def create(req: PipeRequest):
            data = validate_body_or_params(req.body, CreateAgreement)
    """
    try:
        return TypeAdapter(schema).validate_python(body_or_params)
    except ValidationError as e:
        issues = [
            {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
            for error in e.errors()
        ]
        raise PipeValidationError(issues) from e
