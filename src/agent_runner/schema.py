# schema.py
# Structured-output contracts for agent steps.
#
# A step's json_schema is either a "simple format" document
#   {"title": "string", "tags": "string[]", "items": [{"id": "number"}]}
# or a formal JSON Schema object. Both compile to a pydantic type that the
# generator turns into a response_format constraint.

import json
import keyword
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, create_model

from agent_runner import display

_SIMPLE_TYPES: dict[str, type] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
    "unknown": str,
}


def generate_simple_schema(value: Any) -> Any:
    """Describe sample data in simple format. Arrays are typed by their first element."""
    if value is None:
        return "unknown"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return [generate_simple_schema(value[0])] if value else []
    if isinstance(value, dict):
        return {key: generate_simple_schema(item) for key, item in value.items()}
    return "unknown"


def _field_name(key: str, index: int) -> str:
    if key.isidentifier() and not keyword.iskeyword(key) and not key.startswith(("_", "model_")):
        return key
    return f"field_{index}"


def _model(name: str, fields: dict[str, tuple[Any, Any]]) -> type[BaseModel]:
    definitions = {}
    for index, (key, (annotation, default)) in enumerate(fields.items()):
        definitions[_field_name(key, index)] = (annotation, Field(default, alias=key))
    return create_model(
        name,
        __config__=ConfigDict(protected_namespaces=(), populate_by_name=True),
        **definitions,
    )


def _is_formal(structure: dict) -> bool:
    kind = structure.get("type")
    if kind == "object":
        return isinstance(structure.get("properties"), dict)
    if kind == "array":
        return "items" in structure
    return False


def _from_json_schema(schema: dict, name: str) -> Any:
    kind = schema.get("type")
    if kind == "object":
        required = set(schema.get("required", []))
        fields = {}
        for key, sub_schema in schema.get("properties", {}).items():
            annotation = _from_json_schema(sub_schema, f"{name}{key.title()}")
            if key in required:
                fields[key] = (annotation, ...)
            else:
                fields[key] = (Optional[annotation], None)
        return _model(name, fields)
    if kind == "array":
        return list[_from_json_schema(schema.get("items") or {}, f"{name}Item")]
    return _SIMPLE_TYPES.get(kind, str)


def parse_simple_format(structure: Any, name: str = "Response") -> Any:
    """Compile a simple-format (or formal JSON Schema) structure into a pydantic type."""
    if structure is None:
        return str
    if isinstance(structure, bool):
        return bool
    if isinstance(structure, (int, float)):
        return float
    if isinstance(structure, str):
        if structure.endswith("[]"):
            return list[_SIMPLE_TYPES.get(structure[:-2], str)]
        # literal sample values describe a string
        return _SIMPLE_TYPES.get(structure, str)
    if isinstance(structure, list):
        if not structure:
            return list[str]
        return list[parse_simple_format(structure[0], f"{name}Item")]
    if isinstance(structure, dict):
        if _is_formal(structure):
            return _from_json_schema(structure, name)
        return _model(
            name,
            {
                key: (parse_simple_format(value, f"{name}{str(key).title()}"), ...)
                for key, value in structure.items()
            },
        )
    return str


class StructuredOutput:
    """A named output contract that can validate model responses."""

    def __init__(self, name: str, structure: Any) -> None:
        self.name = name
        self.structure = structure
        self._adapter = TypeAdapter(structure)

    def json_schema(self) -> dict:
        return self._adapter.json_schema()

    def validate_json(self, text: str) -> Any:
        return self._adapter.validate_json(text)

    def validate_python(self, data: Any) -> Any:
        return self._adapter.validate_python(data)


def process_structure(name: str, structure: Any) -> StructuredOutput:
    return StructuredOutput(name, parse_simple_format(structure, name.title().replace("-", "")))


def process_json_schema(name: str, json_schema: str | None) -> StructuredOutput | None:
    """
    Compile a step's json_schema string.

    Returns None when the schema is empty or is not valid JSON.
    """
    if not json_schema or not json_schema.strip():
        return None
    try:
        structure = json.loads(json_schema)
    except json.JSONDecodeError as exc:
        display.schema_invalid(name, str(exc))
        return None
    return process_structure(name, structure)
