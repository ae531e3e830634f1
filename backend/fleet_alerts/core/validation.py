from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from fleet_alerts.core.exceptions import ValidationFailedError, format_validation_errors

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def validate_input(schema: type[SchemaT], data: Any) -> SchemaT:
    """Validate untrusted input against a schema, raising the VALIDATION error kind.

    Every offending field is reported, not just the first one.
    """
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailedError(details=format_validation_errors(exc.errors())) from exc
