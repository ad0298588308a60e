"""Format-agnostic helpers shared by every parser.

Every helper is deterministic and side-effect free. When information is
missing they degrade to an explicit placeholder ("any", "object", None)
instead of guessing.
"""

import copy
import re
from datetime import datetime, timezone
from typing import Any, Mapping

from spec_normalizer.parser.base import (
    InputSourceInfo,
    InputSpec,
    NormalizationNote,
    NormalizedType,
    NoteLevel,
    ParserResult,
    ParsingError,
    NormalizedSpec,
)

PARSER_VERSION = "1.0.0"

PRIMITIVE_TYPES = frozenset(
    {
        "string",
        "number",
        "boolean",
        "bytes",
        "bigint",
        "timestamp",
        "null",
        "any",
        "integer",
        "object",
    }
)

# Solidity aliases plus the multi-value return placeholder
BUILTIN_TYPES = PRIMITIVE_TYPES | {"Address", "BigInt", "Bytes32", "Tuple"}

PRIMITIVE_TYPE_MAP = {
    "str": "string",
    "string": "string",
    "int": "integer",
    "integer": "integer",
    "num": "number",
    "number": "number",
    "float": "number",
    "double": "number",
    "bool": "boolean",
    "boolean": "boolean",
    "datetime": "timestamp",
    "date": "timestamp",
    "timestamp": "timestamp",
    "uuid": "string",
    "object": "object",
    "null": "null",
    "any": "any",
    "bigint": "bigint",
    "uint": "number",
    "uint256": "bigint",
    "bytes": "bytes",
    "bytes32": "bytes",
    "file": "bytes",
}

EXAMPLE_DEFAULTS = {
    "string": "example",
    "number": 42,
    "integer": 1,
    "boolean": True,
    "array": [],
    "object": {},
}

_ARRAY_SUFFIX = re.compile(r"^(.+)(\[\d*\])$")


class ParseNotes:
    """Errors and warnings collected during a single parse call."""

    def __init__(self):
        self.errors: list[ParsingError] = []
        self.warnings: list[NormalizationNote] = []

    def error(self, code: str, message: str, location: str | None = None, context: Any = None) -> None:
        self.errors.append(ParsingError(code=code, message=message, location=location, context=context))

    def warn(self, code: str, message: str, location: str | None = None, level: NoteLevel = "warning") -> None:
        self.warnings.append(NormalizationNote(level=level, code=code, message=message, location=location))

    def failure(self) -> ParserResult:
        return ParserResult(success=False, errors=self.errors, warnings=self.warnings)

    def result(self, normalized: NormalizedSpec) -> ParserResult:
        return ParserResult(
            success=not self.errors,
            normalized=normalized,
            errors=self.errors,
            warnings=self.warnings,
        )


def source_info(input_spec: InputSpec, parser: str) -> InputSourceInfo:
    return InputSourceInfo(
        input_type=input_spec.type,
        source_path=input_spec.source,
        parsed_at=datetime.now(timezone.utc).isoformat(),
        parser=parser,
        version=PARSER_VERSION,
    )


# ---------------------------------------------------------------------------
# Type references
# ---------------------------------------------------------------------------


def split_array_type(type_name: str) -> tuple[str, str] | None:
    """Split "T[]" / "T[N]" into (T, suffix). Returns None for non-array names."""
    match = _ARRAY_SUFFIX.match(type_name)
    if not match:
        return None
    return match.group(1), match.group(2)


def element_type(type_name: str) -> str:
    """Peel every array suffix: "Foo[][3]" -> "Foo"."""
    while (parts := split_array_type(type_name)) is not None:
        type_name = parts[0]
    return type_name


def resolve_type_reference(
    type_ref: str,
    builtin_types: frozenset[str] | set[str],
    defined_types: Mapping[str, Any],
) -> str | None:
    """Return type_ref if it names a builtin, a defined type, or an array of either."""
    if type_ref in builtin_types or type_ref in defined_types:
        return type_ref
    parts = split_array_type(type_ref)
    if parts and resolve_type_reference(parts[0], builtin_types, defined_types):
        return type_ref
    return None


def _referenced_types(type_def: NormalizedType) -> list[str]:
    if type_def.type == "object":
        return [f.type for f in type_def.fields.values()]
    if type_def.type == "array":
        return [type_def.items.type]
    if type_def.type == "union":
        return list(type_def.union_types)
    if type_def.type == "map":
        return [type_def.map_value_type]
    return []


def validate_type_references(
    types: Mapping[str, NormalizedType],
    builtin_types: frozenset[str] | set[str] = PRIMITIVE_TYPES,
) -> tuple[list[str], list[str]]:
    """Audit the type graph.

    Returns (unresolvable, circular): type references that resolve to nothing,
    and type names found on the recursion stack while walking the graph.
    Cycles are legal (recursive object graphs); callers report them as warnings.
    """
    unresolvable: list[str] = []
    circular: list[str] = []
    visited: set[str] = set()
    stack: set[str] = set()

    def check(type_name: str) -> None:
        if type_name in visited:
            return
        if type_name in stack:
            if type_name not in circular:
                circular.append(type_name)
            return
        type_def = types.get(type_name)
        if type_def is None:
            return

        stack.add(type_name)
        for ref in _referenced_types(type_def):
            if resolve_type_reference(ref, builtin_types, types) is None:
                if ref not in unresolvable:
                    unresolvable.append(ref)
                continue
            target = element_type(ref)
            if target in types and target not in builtin_types:
                check(target)
        stack.discard(type_name)
        visited.add(type_name)

    for name in types:
        check(name)

    return unresolvable, circular


# ---------------------------------------------------------------------------
# Schema extraction
# ---------------------------------------------------------------------------


def normalize_primitive_type(raw: str) -> str:
    """Canonicalize loosely spelled primitive names. Unknown names are returned unchanged."""
    return PRIMITIVE_TYPE_MAP.get(raw.strip().lower(), raw)


def flatten_ref_path(ref: str) -> str:
    """"#/components/schemas/User" -> "User"."""
    return ref.rsplit("/", 1)[-1]


def _schema_type(schema: Mapping[str, Any]) -> str | None:
    raw = schema.get("type")
    if isinstance(raw, list):
        # OpenAPI 3.1: ["string", "null"]
        raw = next((t for t in raw if t != "null"), "null" if raw else None)
    return raw if isinstance(raw, str) else None


def is_nullable(schema: Mapping[str, Any] | None) -> bool:
    if not isinstance(schema, Mapping):
        return False
    raw = schema.get("type")
    return schema.get("nullable") is True or (isinstance(raw, list) and "null" in raw)


def extract_type(schema: Mapping[str, Any] | None) -> str:
    """Derive a type reference from a JSON-schema-like mapping."""
    if not isinstance(schema, Mapping) or not schema:
        return "any"

    if isinstance(schema.get("$ref"), str):
        return flatten_ref_path(schema["$ref"])

    raw_type = _schema_type(schema)
    if raw_type == "array" or (raw_type is None and "items" in schema):
        items = schema.get("items")
        return f"{extract_type(items)}[]"
    if raw_type:
        return normalize_primitive_type(raw_type)

    for key in ("allOf", "oneOf", "anyOf"):
        members = schema.get(key)
        if isinstance(members, list) and members:
            # A single-member composition is just a wrapped reference
            return extract_type(members[0]) if len(members) == 1 else "any"
    if "enum" in schema:
        return "any"
    return "object"


def extract_example(schema: Mapping[str, Any] | None, type_name: str) -> Any:
    """Explicit example, then default, then the fixed per-type placeholder."""
    if isinstance(schema, Mapping):
        if schema.get("example") is not None:
            return schema["example"]
        if schema.get("default") is not None:
            return schema["default"]
    if split_array_type(type_name):
        type_name = "array"
    return copy.deepcopy(EXAMPLE_DEFAULTS.get(type_name))


def extract_required_fields(schema: Mapping[str, Any] | None) -> list[str]:
    if isinstance(schema, Mapping) and isinstance(schema.get("required"), list):
        return [str(name) for name in schema["required"]]
    return []


def is_field_required(field_name: str, required_list: list[str], schema: Mapping[str, Any] | None) -> bool:
    if field_name in required_list:
        return True
    # Swagger 1.x style per-property flag
    return isinstance(schema, Mapping) and schema.get("required") is True


def classify_parameter_location(param: Mapping[str, Any]) -> str:
    """path / query / header / body / input; anything ambiguous is body."""
    location = param.get("in") or param.get("location")
    if location in ("path", "query", "header", "body", "input"):
        return location
    return "body"


def normalize_http_method(method: str) -> str | None:
    normalized = method.upper()
    if normalized in ("GET", "POST", "PUT", "PATCH", "DELETE"):
        return normalized
    if normalized in ("FUNCTION", "EVENT"):
        return normalized.lower()
    return None


def extract_content_type(content_type: str | None) -> str:
    """Media type without parameters: "application/json; charset=utf-8" -> "application/json"."""
    if content_type:
        return content_type.split(";")[0].strip()
    return "application/json"


def is_error_status_code(code: int | str) -> bool:
    try:
        return int(code) >= 400
    except (TypeError, ValueError):
        return False
