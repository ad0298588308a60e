"""OpenAPI / Swagger document parser.

Normalizes OpenAPI 3.x and Swagger 2.0 documents into a NormalizedSpec.
Missing or ambiguous data is handled explicitly, never invented.
"""

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from spec_normalizer.parser.base import (
    ArrayItems,
    ArrayType,
    Contact,
    EnumType,
    FieldValidation,
    InputSpec,
    License,
    MapType,
    NormalizedAuth,
    NormalizedError,
    NormalizedField,
    NormalizedNetwork,
    NormalizedOperation,
    NormalizedParameter,
    NormalizedProductInfo,
    NormalizedSpec,
    NormalizedType,
    ObjectType,
    OperationAuth,
    OperationExample,
    ParserResult,
    PrimitiveType,
    RequestBody,
    ResponseInfo,
    UnionType,
)
from spec_normalizer.parser.utils import (
    PRIMITIVE_TYPES,
    ParseNotes,
    classify_parameter_location,
    extract_content_type,
    extract_example,
    extract_required_fields,
    extract_type,
    flatten_ref_path,
    is_error_status_code,
    is_field_required,
    is_nullable,
    normalize_http_method,
    normalize_primitive_type,
    source_info,
    validate_type_references,
)

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")

ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    429: "RATE_LIMITED",
    500: "INTERNAL_SERVER_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}
ERROR_STATUSES = {code: status for status, code in ERROR_CODES.items()}

ERROR_DESCRIPTIONS = {
    "BAD_REQUEST": "Invalid request parameters",
    "UNAUTHORIZED": "Authentication required or failed",
    "FORBIDDEN": "Access denied",
    "NOT_FOUND": "Resource not found",
    "CONFLICT": "Resource conflict",
    "RATE_LIMITED": "Rate limit exceeded",
    "INTERNAL_SERVER_ERROR": "Internal server error",
    "BAD_GATEWAY": "Bad gateway",
    "SERVICE_UNAVAILABLE": "Service unavailable",
}

PRIMITIVE_SCHEMA_TYPES = ("string", "number", "integer", "boolean")
COMPOSITION_KEYS = ("allOf", "oneOf", "anyOf")

_PATH_PARAM = re.compile(r"{([^}]+)}")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


class OpenAPIDocument(BaseModel):
    """Top-level shape of an OpenAPI 3.x / Swagger 2.0 document."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    openapi: str | None = None
    swagger: str | None = None
    info: dict[str, Any] = {}
    servers: list[dict[str, Any]] = []
    paths: dict[str, Any] = {}
    components: dict[str, Any] = {}
    definitions: dict[str, Any] = {}
    parameters: dict[str, Any] = {}
    responses: dict[str, Any] = {}
    security: list[dict[str, Any]] | None = None
    security_definitions: dict[str, Any] = Field(default={}, alias="securityDefinitions")
    host: str | None = None
    base_path: str | None = Field(default=None, alias="basePath")
    schemes: list[str] = []
    produces: list[str] = []

    @field_validator("openapi", "swagger", mode="before")
    @classmethod
    def _version_as_string(cls, v: Any) -> Any:
        # YAML reads `swagger: 2.0` as a float
        return str(v) if isinstance(v, (int, float)) else v

    @field_validator(
        "info", "paths", "components", "definitions", "parameters", "responses", "security_definitions",
        mode="before",
    )
    @classmethod
    def _null_mapping(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("servers", "schemes", "produces", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("paths", mode="before")
    @classmethod
    def _path_items(cls, v: Any) -> Any:
        # `x-` keys are extensions, not paths
        if isinstance(v, dict):
            return {
                str(path): {} if item is None else item
                for path, item in v.items()
                if not str(path).startswith("x-")
            }
        return v

    @property
    def schemas(self) -> dict[str, Any]:
        return self.components.get("schemas") or self.definitions

    @property
    def security_schemes(self) -> dict[str, Any]:
        return self.components.get("securitySchemes") or self.security_definitions

    def resolve(self, obj: Any, section: str) -> Any:
        """Follow a local `$ref` into components/<section> (3.x) or the top-level section (2.0)."""
        if not isinstance(obj, dict) or "$ref" not in obj:
            return obj
        name = flatten_ref_path(str(obj["$ref"]))
        table = self.components.get(section) or getattr(self, section, None) or {}
        return table.get(name)


class OpenAPIParser:
    """Parser for openapi-3.0, openapi-3.1 and swagger-2.0 inputs."""

    name = "OpenAPIParser"

    def can_parse(self, input_spec: InputSpec) -> bool:
        return input_spec.type in ("openapi-3.0", "openapi-3.1", "swagger-2.0")

    def parse(self, input_spec: InputSpec) -> ParserResult:
        notes = ParseNotes()
        try:
            return self._parse(input_spec, notes)
        except Exception as e:
            logger.exception("Unexpected error while parsing %s", input_spec.source)
            notes.error("PARSE_EXCEPTION", f"Unexpected error: {e}")
            return notes.failure()

    def _parse(self, input_spec: InputSpec, notes: ParseNotes) -> ParserResult:
        raw = input_spec.raw_content
        if not isinstance(raw, dict):
            notes.error("INVALID_OPENAPI", "OpenAPI document must be a JSON object")
            return notes.failure()

        if not raw.get("openapi") and not raw.get("swagger"):
            notes.error("MISSING_VERSION", "OpenAPI spec missing 'openapi' or 'swagger' field")
            return notes.failure()

        try:
            doc = OpenAPIDocument.model_validate(raw)
        except ValidationError as e:
            notes.error("INVALID_OPENAPI", f"Malformed OpenAPI document: {e.error_count()} invalid field(s)",
                        context=e.errors(include_url=False))
            return notes.failure()

        types = _extract_types(doc, notes)
        operations = _extract_operations(doc, notes)

        unresolvable, circular = validate_type_references(types, PRIMITIVE_TYPES)
        if unresolvable:
            notes.warn(
                "UNRESOLVABLE_TYPE_REFS",
                f"Found unresolvable type references: {', '.join(unresolvable)}",
            )
        if circular:
            notes.warn(
                "CIRCULAR_TYPES",
                f"Found potentially circular type references: {', '.join(circular)}",
            )

        spec = NormalizedSpec(
            product=_extract_product_info(doc),
            types=types,
            operations=operations,
            errors=_extract_errors(operations),
            authentication=_extract_authentication(doc),
            networks=_extract_networks(doc),
            source=source_info(input_spec, self.name),
            normalization_notes=notes.warnings,
        )
        logger.debug(
            "Parsed %s: %d types, %d operations", input_spec.source, len(types), len(operations)
        )
        return notes.result(spec)


# ---------------------------------------------------------------------------
# Product info
# ---------------------------------------------------------------------------


def _extract_product_info(doc: OpenAPIDocument) -> NormalizedProductInfo:
    info = doc.info
    title = info.get("title")
    contact = info.get("contact")
    license_info = info.get("license")

    return NormalizedProductInfo(
        name=re.sub(r"\s+", "-", str(title or "api").lower()),
        version=str(info.get("version") or "1.0.0"),
        api_version=doc.openapi or doc.swagger,
        description=info.get("description") or f"API: {title or 'Unknown'}",
        title=title,
        contact=Contact(**{k: contact.get(k) for k in ("name", "email", "url")})
        if isinstance(contact, dict) else None,
        license=License(name=str(license_info.get("name", "")), url=license_info.get("url"))
        if isinstance(license_info, dict) else None,
        terms_of_service=info.get("termsOfService"),
    )


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


def _extract_types(doc: OpenAPIDocument, notes: ParseNotes) -> dict[str, NormalizedType]:
    types: dict[str, NormalizedType] = {}
    for type_name, schema in doc.schemas.items():
        if not isinstance(schema, dict):
            notes.warn("INVALID_SCHEMA", f"Schema '{type_name}' is not an object", location=f"schemas.{type_name}")
            continue
        types[str(type_name)] = _normalize_type(str(type_name), schema)
    return types


def _normalize_type(name: str, schema: dict) -> NormalizedType:
    common = {
        "name": name,
        "description": schema.get("description") or f"Type: {name}",
        "nullable": is_nullable(schema),
        "example": extract_example(schema, extract_type(schema)),
        "required": extract_required_fields(schema),
    }
    raw_type = schema.get("type")
    additional = schema.get("additionalProperties")

    if "items" in schema:
        items = schema.get("items")
        return ArrayType(items=ArrayItems(type=extract_type(items), nullable=is_nullable(items)), **common)

    if isinstance(schema.get("enum"), list):
        return EnumType(enum_values=[_enum_value(v) for v in schema["enum"]], **common)

    for key in COMPOSITION_KEYS:
        members = schema.get(key)
        if isinstance(members, list):
            return UnionType(union_types=[extract_type(m) for m in members], composition=key, **common)

    if raw_type in PRIMITIVE_SCHEMA_TYPES:
        return PrimitiveType(primitive_type=normalize_primitive_type(raw_type), **common)

    if isinstance(additional, dict) and not schema.get("properties"):
        return MapType(map_value_type=extract_type(additional), **common)

    required = common["required"]
    fields = {
        str(field_name): _normalize_field(str(field_name), field_schema, required)
        for field_name, field_schema in (schema.get("properties") or {}).items()
        if isinstance(field_schema, dict)
    }
    return ObjectType(fields=fields, additional_properties=additional is not False, **common)


def _normalize_field(name: str, schema: dict, required: list[str]) -> NormalizedField:
    field_type = extract_type(schema)
    return NormalizedField(
        name=name,
        type=field_type,
        description=schema.get("description") or "",
        required=is_field_required(name, required, schema),
        nullable=is_nullable(schema),
        example=extract_example(schema, field_type),
        default=schema.get("default"),
        enum=schema.get("enum"),
        validation=_extract_validation(schema),
    )


def _enum_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _extract_validation(*sources: dict | None) -> FieldValidation | None:
    constraints = {}
    for key in ("pattern", "minLength", "maxLength", "minimum", "maximum"):
        for source in sources:
            if isinstance(source, dict) and source.get(key) is not None:
                constraints[key] = source[key]
                break
    return FieldValidation(**constraints) if constraints else None


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def synthesize_operation_id(method: str, path: str) -> str:
    """`get /users/{id}` -> `getUsersid`."""
    sanitized = _NON_ALNUM.sub("", path)
    return f"{method}{sanitized[:1].upper()}{sanitized[1:]}"


def _extract_operations(doc: OpenAPIDocument, notes: ParseNotes) -> list[NormalizedOperation]:
    operations = []
    for path, path_item in doc.paths.items():
        if not isinstance(path_item, dict):
            notes.warn("INVALID_PATH_ITEM", f"Path item for '{path}' is not an object", location=f"paths.{path}")
            continue
        shared_params = path_item.get("parameters") or []

        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not operation:
                continue
            if not isinstance(operation, dict):
                notes.warn("INVALID_OPERATION", f"{method.upper()} {path} is not an object",
                           location=f"paths.{path}.{method}")
                continue
            operations.append(_normalize_operation(doc, path, method, operation, shared_params, notes))
    return operations


def _normalize_operation(
    doc: OpenAPIDocument,
    path: str,
    method: str,
    operation: dict,
    shared_params: list,
    notes: ParseNotes,
) -> NormalizedOperation:
    operation_id = operation.get("operationId") or synthesize_operation_id(method, path)
    raw_params = _merge_parameters(doc, shared_params, operation.get("parameters") or [], notes, path)

    return NormalizedOperation(
        id=operation_id,
        name=operation.get("summary") or operation.get("operationId") or f"{method.upper()} {path}",
        description=operation.get("description") or "",
        method=normalize_http_method(method) or "GET",
        path=path,
        parameters=_parse_parameters(raw_params, path),
        request_body=_parse_request_body(doc, operation, raw_params),
        response=_parse_response(doc, operation),
        errors=_parse_error_codes(operation),
        authentication=_parse_operation_auth(operation),
        deprecated=operation.get("deprecated") is True,
        example=_parse_operation_example(doc, operation),
        tags=[str(t) for t in operation.get("tags") or []],
        operation_id=operation.get("operationId"),
    )


def _merge_parameters(
    doc: OpenAPIDocument, shared: list, own: list, notes: ParseNotes, path: str
) -> list[dict]:
    """Path-item parameters overridden by operation parameters with the same name and location."""
    merged: dict[tuple, dict] = {}
    for idx, param in enumerate([*shared, *own]):
        resolved = doc.resolve(param, "parameters")
        if not isinstance(resolved, dict):
            ref = param.get("$ref") if isinstance(param, dict) else param
            notes.warn("UNRESOLVED_PARAMETER_REF", f"Cannot resolve parameter {ref!r}", location=f"paths.{path}")
            continue
        key = (resolved.get("name") or f"param{idx}", resolved.get("in"))
        merged[key] = resolved
    return list(merged.values())


def _parse_parameters(params: list[dict], path: str) -> list[NormalizedParameter]:
    result = []
    for idx, p in enumerate(params):
        schema = p.get("schema") if isinstance(p.get("schema"), dict) else None
        source = schema or p
        param_type = extract_type(source)
        result.append(
            NormalizedParameter(
                name=p.get("name") or f"param{idx}",
                type=param_type,
                description=p.get("description") or "",
                required=p.get("required") is True,
                nullable=is_nullable(schema) or p.get("nullable") is True,
                location=classify_parameter_location(p),
                default=source.get("default", p.get("default")),
                enum=source.get("enum", p.get("enum")),
                example=extract_example(source, param_type),
                validation=_extract_validation(schema, p),
            )
        )

    declared = {p.name for p in result}
    for param_name in _PATH_PARAM.findall(path):
        if param_name not in declared:
            declared.add(param_name)
            result.append(
                NormalizedParameter(
                    name=param_name,
                    type="string",
                    description=f"Path parameter: {param_name}",
                    required=True,
                    location="path",
                )
            )
    return result


def _parse_request_body(doc: OpenAPIDocument, operation: dict, params: list[dict]) -> RequestBody | None:
    body = doc.resolve(operation.get("requestBody"), "requestBodies")
    if isinstance(body, dict):
        content = body.get("content") or {}
        content_type = next(iter(content), "application/json")
        schema = (content.get(content_type) or {}).get("schema")
        return RequestBody(
            type=extract_type(schema) if schema else "object",
            required=body.get("required") is not False,
            content_type=extract_content_type(content_type),
        )

    # Swagger 2.0: `in: body` parameter
    for p in params:
        if p.get("in") == "body":
            consumes = operation.get("consumes") or ["application/json"]
            return RequestBody(
                type=extract_type(p.get("schema")) if p.get("schema") else "object",
                required=p.get("required") is True,
                content_type=consumes[0],
            )
    return None


def _responses(operation: dict) -> dict[str, Any]:
    return {str(status): resp for status, resp in (operation.get("responses") or {}).items()}


def _select_status(responses: dict[str, Any]) -> str:
    if "200" in responses:
        return "200"
    success = next((s for s in responses if s.startswith("2")), None)
    return success or next(iter(responses), "200")


def _response_schema(doc: OpenAPIDocument, operation: dict, response: dict) -> tuple[dict | None, str]:
    content = response.get("content")
    if isinstance(content, dict):
        content_type = next(iter(content), "application/json")
        return (content.get(content_type) or {}).get("schema"), extract_content_type(content_type)
    produces = operation.get("produces") or doc.produces or ["application/json"]
    return response.get("schema"), produces[0]


def _parse_response(doc: OpenAPIDocument, operation: dict) -> ResponseInfo:
    responses = _responses(operation)
    status = _select_status(responses)
    status_code = int(status) if status.isdigit() else None

    response = doc.resolve(responses.get(status), "responses")
    if not isinstance(response, dict):
        return ResponseInfo(type="object", status_code=status_code)

    schema, content_type = _response_schema(doc, operation, response)
    return ResponseInfo(
        type=extract_type(schema) if schema else "object",
        status_code=status_code,
        content_type=content_type,
    )


def _parse_error_codes(operation: dict) -> list[str]:
    errors: list[str] = []
    for status in _responses(operation):
        if not status.isdigit() or not is_error_status_code(status):
            continue
        code = ERROR_CODES.get(int(status), f"HTTP_{status}")
        if code not in errors:
            errors.append(code)
    return errors


def _parse_operation_auth(operation: dict) -> OperationAuth | None:
    if "security" not in operation:
        return None
    if not operation["security"]:
        return OperationAuth(required=False, type="none")
    return OperationAuth(required=True, type="custom")


def _parse_operation_example(doc: OpenAPIDocument, operation: dict) -> OperationExample | None:
    responses = _responses(operation)
    response = doc.resolve(responses.get("200") or next(iter(responses.values()), None), "responses")
    if not isinstance(response, dict):
        return None

    example = response.get("example")
    if example is None:
        for media in (response.get("content") or {}).values():
            if isinstance(media, dict) and media.get("example") is not None:
                example = media["example"]
                break
    if example is None and isinstance(response.get("examples"), dict):
        example = next(iter(response["examples"].values()), None)
    return OperationExample(response=example) if example is not None else None


# ---------------------------------------------------------------------------
# Errors, authentication, networks
# ---------------------------------------------------------------------------


def _extract_errors(operations: list[NormalizedOperation]) -> list[NormalizedError]:
    codes = dict.fromkeys(code for op in operations for code in op.errors)
    return [
        NormalizedError(
            code=code,
            message=code.replace("_", " "),
            description=ERROR_DESCRIPTIONS.get(code, f"Error: {code}"),
            http_status=ERROR_STATUSES.get(code) or _status_from_http_code(code),
        )
        for code in codes
    ]


def _status_from_http_code(code: str) -> int | None:
    suffix = code.removeprefix("HTTP_")
    return int(suffix) if code.startswith("HTTP_") and suffix.isdigit() else None


def _scheme_auth_type(scheme: dict) -> str:
    scheme_type = str(scheme.get("type", "")).lower()
    if scheme_type == "http":
        return "basic" if str(scheme.get("scheme", "")).lower() == "basic" else "bearer"
    return {"basic": "basic", "apikey": "api_key", "oauth2": "oauth2"}.get(scheme_type, "custom")


def _extract_authentication(doc: OpenAPIDocument) -> NormalizedAuth:
    schemes = doc.security_schemes
    scheme = next(iter(schemes.values()), None) if schemes else None
    if not isinstance(scheme, dict):
        return NormalizedAuth(type="none", required=False)

    operation_security = (
        op.get("security")
        for item in doc.paths.values() if isinstance(item, dict)
        for method, op in item.items() if method in HTTP_METHODS and isinstance(op, dict)
    )
    required = bool(doc.security) or any(operation_security)

    details = {
        key: scheme[key]
        for key in ("scheme", "bearerFormat", "in", "name", "flows", "openIdConnectUrl")
        if scheme.get(key) is not None
    }
    return NormalizedAuth(
        type=_scheme_auth_type(scheme),
        required=required,
        description=scheme.get("description"),
        details=details or None,
    )


def _extract_networks(doc: OpenAPIDocument) -> list[NormalizedNetwork]:
    if doc.servers:
        return [
            NormalizedNetwork(
                id=f"server-{idx}",
                name=server.get("description") or f"Server {idx}",
                type="rest",
                url=str(server.get("url", "")),
            )
            for idx, server in enumerate(doc.servers)
        ]

    if doc.host:
        scheme = doc.schemes[0] if doc.schemes else "https"
        return [
            NormalizedNetwork(
                id="server-0",
                name=doc.host,
                type="rest",
                url=f"{scheme}://{doc.host}{doc.base_path or ''}",
            )
        ]

    # Nothing declared: placeholder the generator must fill in
    return [
        NormalizedNetwork(
            id="production",
            name="Production",
            type="rest",
            url="{baseUrl}",
            environment="production",
        )
    ]
