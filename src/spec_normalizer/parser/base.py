"""Canonical data models for normalized interface descriptions.

All parsers (OpenAPI/Swagger, contract ABI, chain metadata) convert their
input into these standard models for downstream code generation.
Serialized field names are camelCase; Python attributes are snake_case.
"""

from typing import Annotated, Any, Literal, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

InputSpecType = Literal[
    "openapi-3.0",
    "openapi-3.1",
    "swagger-2.0",
    "contract-abi",
    "chain-metadata",
    "custom",
]
InputFormat = Literal["json", "yaml", "raw-object"]
NoteLevel = Literal["info", "warning", "error"]
OperationMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "function", "event"]
ParameterLocation = Literal["path", "query", "header", "body", "input"]
AuthType = Literal["none", "api_key", "bearer", "oauth2", "basic", "custom"]
NetworkType = Literal["rest", "rpc", "graphql", "custom"]
Environment = Literal["production", "staging", "test"]


class CanonicalModel(BaseModel):
    """Frozen model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class InputSpec(CanonicalModel):
    """A tagged raw payload submitted for normalization."""

    type: InputSpecType
    format: InputFormat = "raw-object"
    source: str = ""
    raw_content: Any = None
    metadata: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Normalized spec
# ---------------------------------------------------------------------------


class Contact(CanonicalModel):
    name: str | None = None
    email: str | None = None
    url: str | None = None


class License(CanonicalModel):
    name: str
    url: str | None = None


class NormalizedProductInfo(CanonicalModel):
    name: str
    version: str
    api_version: str | None = None
    description: str
    title: str | None = None
    contact: Contact | None = None
    license: License | None = None
    terms_of_service: str | None = None


class FieldValidation(CanonicalModel):
    """Value constraints copied verbatim from the source schema."""

    pattern: str | None = None
    min_length: int | None = None
    max_length: int | None = None
    minimum: float | None = None
    maximum: float | None = None


class NormalizedField(CanonicalModel):
    name: str
    type: str
    description: str = ""
    required: bool = False
    nullable: bool = False
    example: Any = None
    default: Any = None
    enum: list[Any] | None = None
    validation: FieldValidation | None = None


class _TypeBase(CanonicalModel):
    name: str
    description: str = ""
    nullable: bool = False
    example: Any = None
    required: list[str] = []


class ObjectType(_TypeBase):
    type: Literal["object"] = "object"
    fields: dict[str, NormalizedField] = {}
    additional_properties: bool = True


class ArrayItems(CanonicalModel):
    type: str
    nullable: bool = False


class ArrayType(_TypeBase):
    type: Literal["array"] = "array"
    items: ArrayItems


class EnumType(_TypeBase):
    type: Literal["enum"] = "enum"
    enum_values: list[str]


class PrimitiveType(_TypeBase):
    type: Literal["primitive"] = "primitive"
    primitive_type: str


class UnionType(_TypeBase):
    type: Literal["union"] = "union"
    union_types: list[str]
    composition: Literal["allOf", "oneOf", "anyOf"] = "oneOf"


class MapType(_TypeBase):
    type: Literal["map"] = "map"
    map_value_type: str


NormalizedType = Annotated[
    Union[ObjectType, ArrayType, EnumType, PrimitiveType, UnionType, MapType],
    Field(discriminator="type"),
]


class NormalizedParameter(CanonicalModel):
    name: str
    type: str
    description: str = ""
    required: bool = False
    nullable: bool = False
    location: ParameterLocation
    default: Any = None
    enum: list[Any] | None = None
    example: Any = None
    validation: FieldValidation | None = None


class RequestBody(CanonicalModel):
    type: str
    required: bool = True
    content_type: str | None = None


class ResponseInfo(CanonicalModel):
    type: str
    status_code: int | None = None
    content_type: str | None = None


class OperationAuth(CanonicalModel):
    required: bool
    type: str


class OperationExample(CanonicalModel):
    request: Any = None
    response: Any = None


class NormalizedOperation(CanonicalModel):
    id: str
    name: str
    description: str = ""
    method: OperationMethod
    path: str | None = None
    function_name: str | None = None
    parameters: list[NormalizedParameter] = []
    request_body: RequestBody | None = None
    response: ResponseInfo
    errors: list[str] = []
    authentication: OperationAuth | None = None
    deprecated: bool = False
    example: OperationExample | None = None
    tags: list[str] = []
    operation_id: str | None = None


class NormalizedError(CanonicalModel):
    code: str
    message: str
    description: str | None = None
    http_status: int | None = None


class NormalizedAuth(CanonicalModel):
    type: AuthType
    required: bool
    description: str | None = None
    details: dict[str, Any] | None = None


class NormalizedNetwork(CanonicalModel):
    id: str
    name: str
    type: NetworkType
    url: str
    chain_id: str | None = None
    environment: Environment | None = None


class InputSourceInfo(CanonicalModel):
    input_type: InputSpecType
    source_path: str
    parsed_at: str  # ISO 8601, UTC
    parser: str
    version: str | None = None


class NormalizationNote(CanonicalModel):
    level: NoteLevel
    code: str
    message: str
    location: str | None = None


# ---------------------------------------------------------------------------
# Web3 specific
# ---------------------------------------------------------------------------


class ContractOutput(CanonicalModel):
    name: str
    type: str


class NormalizedABIFunction(CanonicalModel):
    name: str
    type: Literal["function"] = "function"
    state_mutability: Literal["pure", "view", "nonpayable", "payable"] = "nonpayable"
    inputs: list[NormalizedParameter] = []
    outputs: list[ContractOutput] | None = None
    description: str | None = None


class EventInput(NormalizedParameter):
    indexed: bool = False


class NormalizedABIEvent(CanonicalModel):
    name: str
    type: Literal["event"] = "event"
    inputs: list[EventInput] = []
    anonymous: bool = False
    description: str | None = None


class ContractConstructor(CanonicalModel):
    inputs: list[NormalizedParameter] = []


class NormalizedSmartContract(CanonicalModel):
    name: str
    address: str | None = None
    constructor: ContractConstructor = ContractConstructor()
    functions: dict[str, NormalizedABIFunction] = {}
    events: dict[str, NormalizedABIEvent] = {}


class NormalizedChainMetadata(CanonicalModel):
    id: str
    name: str
    type: Literal["evm", "solana", "cosmos", "other"]
    chain_id: str
    rpc_endpoints: list[str]
    block_time: int | None = None  # milliseconds
    finality: int | None = None  # blocks
    native_token: str | None = None
    explorer: str | None = None


class NormalizedSpec(CanonicalModel):
    """The format-independent representation handed to code generation."""

    product: NormalizedProductInfo
    types: dict[str, NormalizedType] = {}
    operations: list[NormalizedOperation] = []
    errors: list[NormalizedError] = []
    authentication: NormalizedAuth
    networks: list[NormalizedNetwork] = []
    contract: NormalizedSmartContract | None = None
    source: InputSourceInfo
    normalization_notes: list[NormalizationNote] = []


# ---------------------------------------------------------------------------
# Parser contract
# ---------------------------------------------------------------------------


class ParsingError(CanonicalModel):
    code: str
    message: str
    location: str | None = None
    context: Any = None


class ParserResult(CanonicalModel):
    success: bool
    normalized: NormalizedSpec | None = None
    errors: list[ParsingError] = []
    warnings: list[NormalizationNote] = []


class SpecParser(Protocol):
    """Capability every format parser implements."""

    name: str

    def can_parse(self, input_spec: InputSpec) -> bool: ...

    def parse(self, input_spec: InputSpec) -> ParserResult: ...
