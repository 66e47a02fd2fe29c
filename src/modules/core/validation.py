"""Bridge between Pydantic DTO validation and the service error taxonomy."""

from __future__ import annotations

from typing import Any, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from modules.core.exceptions import InvalidArgument

D = TypeVar("D", bound=BaseModel)


def parse_dto(dto_class: Type[D], data: Any) -> D:
    """Validate ``data`` into ``dto_class``.

    Raises:
        InvalidArgument: naming the first offending field (dotted path for
            nested DTOs, e.g. ``beneficiary.account_number``).
    """
    try:
        return dto_class.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        message = first["msg"].removeprefix("Value error, ")
        raise InvalidArgument(
            f"{field}: {message}" if field else message, field=field
        ) from exc
