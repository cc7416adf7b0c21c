"""Schema validation glue for step and workflow payloads.

Payloads travel between nodes as plain JSON-compatible data. Each step declares
the Python type it expects; a :class:`Schema` turns plain data into that type
(and back) using pydantic.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import SchemaValidationError


class Schema:
    """A validator for a single declared type."""

    def __init__(self, tp: Any) -> None:
        self._type = tp
        self._adapter: TypeAdapter[Any] = TypeAdapter(tp)

    @property
    def type(self) -> Any:
        return self._type

    @property
    def name(self) -> str:
        return getattr(self._type, "__name__", None) or repr(self._type)

    @property
    def model(self) -> type[BaseModel] | None:
        """The pydantic model class, when the declared type is one."""

        if isinstance(self._type, type) and issubclass(self._type, BaseModel):
            return self._type
        return None

    def validate(self, raw: Any) -> Any:
        if isinstance(raw, BaseModel) and self.model is not None and not isinstance(raw, self.model):
            raw = raw.model_dump(mode="json")
        try:
            return self._adapter.validate_python(raw)
        except ValidationError as e:
            raise SchemaValidationError(
                f"expected {self.name}: {e.error_count()} validation error(s)",
                errors=[dict(err) for err in e.errors(include_url=False)],
            ) from e

    def dump(self, value: Any) -> Any:
        return self._adapter.dump_python(value, mode="json", by_alias=True)

    def json_schema(self) -> dict[str, Any]:
        return self._adapter.json_schema()

    def field_names(self) -> set[str] | None:
        model = self.model
        if model is None:
            return None
        return {field.alias or name for name, field in model.model_fields.items()}

    def required_fields(self) -> set[str] | None:
        model = self.model
        if model is None:
            return None
        return {
            field.alias or name
            for name, field in model.model_fields.items()
            if field.is_required()
        }

    def __repr__(self) -> str:
        return f"Schema({self.name})"


def as_schema(tp: Any) -> Schema:
    if isinstance(tp, Schema):
        return tp
    return Schema(tp)
