from marshmallow import Schema, EXCLUDE
from marshmallow import ValidationError as SchemaError

from ..errors import ValidationError


class BaseSchema(Schema):
    class Meta:
        unknown = EXCLUDE


def load(schema: Schema, data) -> dict:
    """Validate request data with ``schema``; invalid input becomes a 400 ``ValidationError``."""
    try:
        return schema.load(data or {})
    except SchemaError as err:
        messages = err.normalized_messages()
        first_field, first = next(iter(messages.items()), ("request", ["Invalid value"]))
        text = first[0] if isinstance(first, list) and first else str(first)
        raise ValidationError(f"{first_field}: {text}", details=messages) from err
