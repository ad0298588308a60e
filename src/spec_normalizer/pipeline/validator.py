"""Consistency checks run over every NormalizedSpec a parser produces."""

from typing import Literal

from spec_normalizer.parser.base import CanonicalModel, NormalizedSpec
from spec_normalizer.parser.utils import BUILTIN_TYPES, resolve_type_reference


class ValidationError(CanonicalModel):
    code: str
    message: str
    path: str  # JSON path to the problematic field
    suggestion: str | None = None


class ValidationWarning(CanonicalModel):
    code: str
    message: str
    path: str
    severity: Literal["minor", "major"]  # major = affects SDK generation


class ValidationResult(CanonicalModel):
    valid: bool
    errors: list[ValidationError] = []
    warnings: list[ValidationWarning] = []


def validate_product(spec: NormalizedSpec) -> list[ValidationError]:
    if spec.product.name:
        return []
    return [
        ValidationError(
            code="MISSING_PRODUCT_NAME",
            message="Product name is required",
            path="product.name",
            suggestion="Provide a product name in the input document",
        )
    ]


def validate_operations(spec: NormalizedSpec, builtin_types: frozenset[str]) -> tuple[list, list]:
    """Check operation type references (errors) and error-code references (warnings)."""
    errors: list[ValidationError] = []
    warnings: list[ValidationWarning] = []
    error_codes = {e.code for e in spec.errors}

    for op_idx, op in enumerate(spec.operations):
        if resolve_type_reference(op.response.type, builtin_types, spec.types) is None:
            errors.append(
                ValidationError(
                    code="UNRESOLVABLE_RESPONSE_TYPE",
                    message=f"Operation '{op.id}' has unresolvable response type: {op.response.type}",
                    path=f"operations[{op_idx}].response.type",
                    suggestion="Define the type in the types section or use a built-in type",
                )
            )

        for param_idx, param in enumerate(op.parameters):
            if resolve_type_reference(param.type, builtin_types, spec.types) is None:
                errors.append(
                    ValidationError(
                        code="UNRESOLVABLE_PARAMETER_TYPE",
                        message=(
                            f"Operation '{op.id}', parameter '{param.name}' "
                            f"has unresolvable type: {param.type}"
                        ),
                        path=f"operations[{op_idx}].parameters[{param_idx}].type",
                        suggestion="Define the type or use a built-in type",
                    )
                )

        for code in op.errors:
            if code not in error_codes:
                warnings.append(
                    ValidationWarning(
                        code="UNDEFINED_ERROR_CODE",
                        message=f"Operation '{op.id}' references undefined error code: {code}",
                        path=f"operations[{op_idx}].errors",
                        severity="major",
                    )
                )

    return errors, warnings


def validate_types(spec: NormalizedSpec, builtin_types: frozenset[str]) -> list[ValidationError]:
    errors = []
    for type_name, type_def in spec.types.items():
        if type_def.name != type_name:
            errors.append(
                ValidationError(
                    code="TYPE_NAME_MISMATCH",
                    message=f"Type registered as '{type_name}' is named '{type_def.name}'",
                    path=f"types.{type_name}.name",
                )
            )

        if type_def.type == "object":
            for field_name, field in type_def.fields.items():
                if resolve_type_reference(field.type, builtin_types, spec.types) is None:
                    errors.append(
                        ValidationError(
                            code="UNRESOLVABLE_FIELD_TYPE",
                            message=(
                                f"Type '{type_name}', field '{field_name}' "
                                f"has unresolvable type: {field.type}"
                            ),
                            path=f"types.{type_name}.fields.{field_name}.type",
                            suggestion="Define the type or use a built-in type",
                        )
                    )
        elif type_def.type == "array":
            if resolve_type_reference(type_def.items.type, builtin_types, spec.types) is None:
                errors.append(
                    ValidationError(
                        code="UNRESOLVABLE_ITEM_TYPE",
                        message=f"Type '{type_name}' has unresolvable item type: {type_def.items.type}",
                        path=f"types.{type_name}.items.type",
                    )
                )
    return errors


def validate_uniqueness(spec: NormalizedSpec) -> list[ValidationError]:
    errors = []

    seen_ops: set[str] = set()
    for idx, op in enumerate(spec.operations):
        if op.id in seen_ops:
            errors.append(
                ValidationError(
                    code="DUPLICATE_OPERATION_ID",
                    message=f"Duplicate operation ID: {op.id}",
                    path=f"operations[{idx}].id",
                    suggestion="Make operation IDs unique",
                )
            )
        seen_ops.add(op.id)

    seen_types: set[str] = set()
    for type_def in spec.types.values():
        if type_def.name in seen_types:
            errors.append(
                ValidationError(
                    code="DUPLICATE_TYPE_NAME",
                    message=f"Duplicate type name: {type_def.name}",
                    path=f"types.{type_def.name}",
                )
            )
        seen_types.add(type_def.name)

    return errors


def validate_spec(
    spec: NormalizedSpec,
    builtin_types: frozenset[str] = BUILTIN_TYPES,
) -> ValidationResult:
    """Run all consistency checks.

    Type references that do not resolve are errors: a generator cannot emit
    code for an undefined type. Undefined error codes are only warnings.
    """
    errors = validate_product(spec)
    op_errors, warnings = validate_operations(spec, builtin_types)
    errors.extend(op_errors)
    errors.extend(validate_types(spec, builtin_types))
    errors.extend(validate_uniqueness(spec))
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
