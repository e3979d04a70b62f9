"""
Request parsing and JSON response helpers.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError as PydanticValidationError
from typing import Type, TypeVar

from ..errors import ValidationError


ModelT = TypeVar("ModelT", bound=BaseModel)


async def read_body(request: Request, schema: Type[ModelT], error: str) -> ModelT:
    """Parse a JSON body, reporting any problem as a 400 with `error`."""
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON")

    try:
        return schema.model_validate(payload)
    except PydanticValidationError:
        raise ValidationError(error)


def model_response(model: BaseModel, status_code: int = 200) -> JSONResponse:
    """Serialize with the camelCase aliases the frontend expects."""
    return JSONResponse(model.model_dump(mode="json", by_alias=True), status_code=status_code)
