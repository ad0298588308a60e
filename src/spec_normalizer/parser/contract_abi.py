"""Smart-contract ABI parser.

Normalizes an Ethereum-style JSON ABI into a NormalizedSpec. Solidity types
are mapped to SDK types; tuple parameters become named struct types.
"""

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from spec_normalizer.parser.base import (
    ContractConstructor,
    ContractOutput,
    EventInput,
    InputSpec,
    NormalizedABIEvent,
    NormalizedABIFunction,
    NormalizedAuth,
    NormalizedError,
    NormalizedField,
    NormalizedOperation,
    NormalizedParameter,
    NormalizedProductInfo,
    NormalizedSmartContract,
    NormalizedSpec,
    NormalizedType,
    ObjectType,
    OperationAuth,
    ParserResult,
    PrimitiveType,
    ResponseInfo,
)
from spec_normalizer.parser.utils import ParseNotes, element_type, source_info, split_array_type

logger = logging.getLogger(__name__)

OPERATION_ENTRY_TYPES = ("function", "fallback", "receive")
MUTABILITIES = ("pure", "view", "nonpayable", "payable")
FUNCTION_ERRORS = ["REVERT", "GAS_ERROR", "INVALID_ADDRESS"]

CONTRACT_ERRORS = [
    NormalizedError(
        code="REVERT",
        http_status=400,
        message="Transaction reverted",
        description="Smart contract execution was reverted",
    ),
    NormalizedError(
        code="GAS_ERROR",
        http_status=500,
        message="Gas estimation failed",
        description="Unable to estimate or execute due to gas constraints",
    ),
    NormalizedError(
        code="INVALID_ADDRESS",
        http_status=400,
        message="Invalid address parameter",
        description="One or more address parameters are invalid",
    ),
]

SOLIDITY_ALIASES = {
    "Address": PrimitiveType(name="Address", description="Ethereum address", primitive_type="string"),
    "BigInt": PrimitiveType(name="BigInt", description="Large integer value", primitive_type="bigint"),
    "Bytes32": PrimitiveType(name="Bytes32", description="32-byte hash", primitive_type="bytes"),
}

SOLIDITY_TYPE_MAP = {
    "address": "Address",
    "address payable": "Address",
    "addresspayable": "Address",
    "bytes": "bytes",
    "bytes32": "Bytes32",
    "string": "string",
    "bool": "boolean",
}

SOLIDITY_EXAMPLES = {
    "address": "0x1234567890123456789012345678901234567890",
    "uint256": "1000000000000000000",
    "uint": "1000000000000000000",
    "int256": "1000000000000000000",
    "bool": True,
    "string": "example value",
    "bytes": "0x1234",
    "bytes32": "0x" + "0" * 64,
}

_INTEGER = re.compile(r"^u?int(\d*)$")
_FIXED_BYTES = re.compile(r"^bytes(\d+)$")


class AbiParameter(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = ""
    type: str
    internal_type: str | None = Field(default=None, alias="internalType")
    indexed: bool = False
    components: list["AbiParameter"] = []
    description: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _null_name(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("components", mode="before")
    @classmethod
    def _null_components(cls, v: Any) -> Any:
        return [] if v is None else v


class AbiEntry(BaseModel):
    """One item of a JSON ABI. `type` defaults to "function" per the ABI format."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str = "function"
    name: str | None = None
    inputs: list[AbiParameter] = []
    outputs: list[AbiParameter] = []
    state_mutability: str | None = Field(default=None, alias="stateMutability")
    constant: bool | None = None
    payable: bool | None = None
    anonymous: bool = False
    description: str | None = None

    @field_validator("inputs", "outputs", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def mutability(self) -> str:
        if self.state_mutability in MUTABILITIES:
            return self.state_mutability
        # Pre-0.5 ABIs only carry constant/payable flags
        if self.constant:
            return "view"
        if self.payable:
            return "payable"
        return "nonpayable"


def normalize_solidity_type(solidity_type: str) -> str:
    """Map a Solidity type to an SDK type, keeping any `[]` / `[N]` suffix."""
    parts = split_array_type(solidity_type)
    if parts:
        element, suffix = parts
        return f"{normalize_solidity_type(element)}{suffix}"

    if solidity_type in SOLIDITY_TYPE_MAP:
        return SOLIDITY_TYPE_MAP[solidity_type]

    match = _INTEGER.match(solidity_type)
    if match:
        bits = int(match.group(1) or 256)
        return "number" if bits <= 64 else "BigInt"

    if _FIXED_BYTES.match(solidity_type):
        return "string"

    return solidity_type


def solidity_example(solidity_type: str) -> Any:
    parts = split_array_type(solidity_type)
    if parts:
        return [solidity_example(parts[0])]
    return SOLIDITY_EXAMPLES.get(solidity_type)


def _pascal(name: str) -> str:
    return name[:1].upper() + name[1:]


class _TypeTable:
    """Types collected while walking one ABI."""

    def __init__(self, notes: ParseNotes):
        self.types: dict[str, NormalizedType] = dict(SOLIDITY_ALIASES)
        self.notes = notes
        self._conflicts: set[str] = set()
        # type name -> qualified struct path it was registered for
        self._origins: dict[str, str] = {}

    def add(self, type_def: ObjectType, location: str) -> None:
        existing = self.types.get(type_def.name)
        if existing is None:
            self.types[type_def.name] = type_def
        elif existing != type_def:
            self._conflict(type_def.name, location)

    def _conflict(self, name: str, location: str) -> None:
        if name in self._conflicts:
            return
        self._conflicts.add(name)
        self.notes.error(
            "DUPLICATE_TYPE_NAME",
            f"Type '{name}' is defined more than once with different shapes",
            location=location,
        )

    def _add_struct(self, short: str, qualified: str, fields: dict[str, NormalizedField], location: str) -> str:
        """Register a struct under its short name, or its qualified name when another struct holds the short one."""
        candidates = [short]
        if self._origins.get(short, qualified) != qualified:
            candidates.append(qualified.replace(".", ""))

        for name in candidates:
            struct = ObjectType(
                name=name,
                description=f"Struct: {name}",
                fields=fields,
                required=list(fields),
                additional_properties=False,
            )
            existing = self.types.get(name)
            if existing is None:
                self.types[name] = struct
                self._origins[name] = qualified
                return name
            if existing == struct:
                return name

        self._conflict(candidates[-1], location)
        return candidates[-1]

    def param_type(self, param: AbiParameter, owner: str, fallback: str) -> str:
        """SDK type for an ABI parameter; tuples are registered as struct types."""
        if element_type(param.type) != "tuple":
            return normalize_solidity_type(param.type)

        short, qualified = _struct_names(param, owner, fallback)
        fields = {}
        for idx, component in enumerate(param.components):
            field_name = component.name or f"field{idx}"
            fields[field_name] = NormalizedField(
                name=field_name,
                type=self.param_type(component, short, _pascal(field_name)),
                description=component.description or "",
                required=True,
                example=solidity_example(component.type),
            )
        struct_name = self._add_struct(short, qualified, fields, location=f"{owner}.{param.name or fallback}")
        return struct_name + param.type[len("tuple"):]


def _struct_names(param: AbiParameter, owner: str, fallback: str) -> tuple[str, str]:
    """Short and qualified names: `struct IPool.Params` -> ("Params", "IPool.Params")."""
    internal = param.internal_type or ""
    if internal.startswith("struct "):
        path = element_type(internal.removeprefix("struct ").strip())
        return path.rsplit(".", 1)[-1], path
    name = _pascal(owner) + _pascal(param.name or fallback)
    return name, name


class ContractABIParser:
    """Parser for contract-abi inputs (rawContent must be a JSON array)."""

    name = "ContractABIParser"

    def can_parse(self, input_spec: InputSpec) -> bool:
        return input_spec.type == "contract-abi"

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
        if not isinstance(raw, list):
            notes.error("INVALID_ABI", "ABI must be a JSON array")
            return notes.failure()

        entries = []
        for idx, item in enumerate(raw):
            try:
                entries.append(AbiEntry.model_validate(item))
            except ValidationError as e:
                notes.error("INVALID_ABI", f"ABI entry {idx} is malformed", location=f"[{idx}]",
                            context=e.errors(include_url=False))
        if notes.errors:
            return notes.failure()

        if not entries:
            notes.warn("EMPTY_ABI", "ABI is empty")

        table = _TypeTable(notes)
        for entry in entries:
            if entry.type == "event":
                _add_event_type(entry, table)

        operations = []
        for entry in entries:
            if entry.type not in OPERATION_ENTRY_TYPES:
                continue
            if entry.type == "function" and not entry.name:
                notes.warn("UNNAMED_FUNCTION", "Skipping function without a name")
                continue
            operations.append(_function_to_operation(entry, table))
        errors = _extract_errors(entries, notes)
        product = _extract_product_info(input_spec.metadata or {})
        contract = _build_contract(entries, product.name, table)

        if notes.errors:
            return notes.failure()

        spec = NormalizedSpec(
            product=product,
            types=table.types,
            operations=operations,
            errors=errors,
            # Every write is signed by a wallet
            authentication=NormalizedAuth(
                type="custom",
                required=True,
                description="Requires signed transactions via wallet",
            ),
            # The ABI is chain-agnostic; chain metadata supplies networks
            networks=[],
            contract=contract,
            source=source_info(input_spec, self.name),
            normalization_notes=notes.warnings,
        )
        logger.debug("Parsed ABI %s: %d operations", input_spec.source, len(operations))
        return notes.result(spec)


def _extract_product_info(metadata: dict[str, Any]) -> NormalizedProductInfo:
    contract_name = str(metadata.get("name") or "SmartContract")
    return NormalizedProductInfo(
        name=contract_name.lower(),
        version=str(metadata.get("version") or "1.0.0"),
        api_version="solidity-1.0",
        description=metadata.get("description") or f"Smart Contract: {contract_name}",
        title=contract_name,
    )


def _add_event_type(event: AbiEntry, table: _TypeTable) -> None:
    if not event.name:
        table.notes.warn("UNNAMED_EVENT", "Skipping event without a name")
        return

    type_name = f"{event.name}Event"
    if type_name in table.types:
        table.notes.error(
            "DUPLICATE_TYPE_NAME",
            f"Event type '{type_name}' is already defined (overloaded event '{event.name}')",
            location=f"events.{event.name}",
        )
        return

    fields = {}
    for idx, param in enumerate(event.inputs):
        field_name = param.name or f"param{idx}"
        fields[field_name] = NormalizedField(
            name=field_name,
            type=table.param_type(param, event.name, _pascal(field_name)),
            description=param.description or "",
            required=True,
            example=solidity_example(param.type),
        )
    table.add(
        ObjectType(
            name=type_name,
            description=event.description or f"Event emitted by {event.name}",
            fields=fields,
        ),
        location=f"events.{event.name}",
    )


def _function_to_operation(func: AbiEntry, table: _TypeTable) -> NormalizedOperation:
    # fallback/receive carry no name in the ABI
    name = func.name or func.type
    mutability = func.mutability
    is_constant = mutability in ("view", "pure")

    parameters = [
        NormalizedParameter(
            name=param.name or f"param{idx}",
            type=table.param_type(param, name, f"Param{idx}"),
            description=param.description or "",
            required=True,
            location="input",
            example=solidity_example(param.type),
        )
        for idx, param in enumerate(func.inputs)
    ]

    return NormalizedOperation(
        id=name,
        name=name,
        description=func.description or f"{mutability} function: {name}",
        method="function",
        function_name=name,
        parameters=parameters,
        response=ResponseInfo(type=_return_type(func, name, table), content_type="application/json"),
        errors=list(FUNCTION_ERRORS),
        authentication=OperationAuth(required=not is_constant, type="wallet"),
        tags=[mutability],
    )


def _return_type(func: AbiEntry, name: str, table: _TypeTable) -> str:
    if not func.outputs:
        return "null"
    if len(func.outputs) == 1:
        return table.param_type(func.outputs[0], name, "Output0")
    return "Tuple"


def _extract_errors(entries: list[AbiEntry], notes: ParseNotes) -> list[NormalizedError]:
    errors = list(CONTRACT_ERRORS)
    for entry in entries:
        if entry.type != "error":
            continue
        if not entry.name:
            notes.warn("UNNAMED_ERROR", "Skipping custom error without a name")
            continue
        errors.append(
            NormalizedError(
                code=entry.name,
                message=re.sub(r"([A-Z])", r" \1", entry.name).strip(),
                description=entry.description or f"Custom error: {entry.name}",
            )
        )
    return errors


def _contract_inputs(params: list[AbiParameter], owner: str, table: _TypeTable) -> list[NormalizedParameter]:
    return [
        NormalizedParameter(
            name=param.name or f"param{idx}",
            type=table.param_type(param, owner, f"Param{idx}"),
            description=param.description or "",
            required=True,
            location="input",
        )
        for idx, param in enumerate(params)
    ]


def _build_contract(entries: list[AbiEntry], contract_name: str, table: _TypeTable) -> NormalizedSmartContract:
    constructor = ContractConstructor()
    functions: dict[str, NormalizedABIFunction] = {}
    events: dict[str, NormalizedABIEvent] = {}

    for entry in entries:
        if entry.type == "constructor":
            constructor = ContractConstructor(inputs=_contract_inputs(entry.inputs, "constructor", table))
        elif entry.type == "function" and entry.name:
            functions[entry.name] = NormalizedABIFunction(
                name=entry.name,
                state_mutability=entry.mutability,
                inputs=_contract_inputs(entry.inputs, entry.name, table),
                outputs=[
                    ContractOutput(
                        name=out.name or f"output{idx}",
                        type=table.param_type(out, entry.name, f"Output{idx}"),
                    )
                    for idx, out in enumerate(entry.outputs)
                ] or None,
                description=entry.description,
            )
        elif entry.type == "event" and entry.name:
            events[entry.name] = NormalizedABIEvent(
                name=entry.name,
                inputs=[
                    EventInput(
                        name=param.name or f"param{idx}",
                        type=table.param_type(param, entry.name, _pascal(param.name or f"param{idx}")),
                        description=param.description or "",
                        required=True,
                        location="input",
                        indexed=param.indexed,
                    )
                    for idx, param in enumerate(entry.inputs)
                ],
                anonymous=entry.anonymous,
                description=entry.description,
            )

    return NormalizedSmartContract(name=contract_name, constructor=constructor, functions=functions, events=events)
