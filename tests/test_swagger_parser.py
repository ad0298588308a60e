from pathlib import Path

import pytest
import yaml

from spec_normalizer.parser.base import InputSpec
from spec_normalizer.parser.swagger import OpenAPIParser, synthesize_operation_id

FIXTURES = Path(__file__).parent / "fixtures"


def _load(name: str) -> dict:
    return yaml.safe_load((FIXTURES / name).read_text(encoding="utf-8"))


def _parse(raw, input_type: str = "openapi-3.0"):
    return OpenAPIParser().parse(InputSpec(type=input_type, source="test", raw_content=raw))


def _op(spec, op_id: str):
    return next(op for op in spec.operations if op.id == op_id)


def _minimal(paths: dict, **extra) -> dict:
    return {"openapi": "3.0.3", "info": {"title": "Demo", "version": "0.1.0"}, "paths": paths, **extra}


class TestCanParse:
    @pytest.mark.parametrize("input_type", ["openapi-3.0", "openapi-3.1", "swagger-2.0"])
    def test_accepts_rest_types(self, input_type):
        assert OpenAPIParser().can_parse(InputSpec(type=input_type))

    def test_rejects_other_types(self):
        assert not OpenAPIParser().can_parse(InputSpec(type="contract-abi"))


class TestPaymentApi:
    @pytest.fixture(scope="class")
    def spec(self):
        result = _parse(_load("payment_api.yaml"))
        assert result.success, result.errors
        return result.normalized

    def test_product(self, spec):
        assert spec.product.name == "payment-api"
        assert spec.product.version == "1.0.0"
        assert spec.product.api_version == "3.0.0"
        assert spec.product.description == "Simple payment processing API"
        assert spec.product.contact.email == "support@example.com"
        assert spec.product.license.name == "MIT"

    def test_types(self, spec):
        assert list(spec.types) == ["PaymentIntent", "CreatePaymentRequest", "Error"]
        intent = spec.types["PaymentIntent"]
        assert intent.type == "object"
        assert intent.additional_properties is False
        assert intent.fields["amount"].type == "integer"
        assert intent.fields["amount"].required is True
        assert intent.fields["amount"].validation.minimum == 1
        assert intent.fields["customer_id"].nullable is True
        assert intent.fields["customer_id"].required is False
        assert intent.fields["status"].enum == ["pending", "succeeded", "failed", "canceled"]
        assert intent.fields["currency"].validation.pattern == "^[a-z]{3}$"

    def test_operations_follow_path_then_method_order(self, spec):
        assert [op.id for op in spec.operations] == ["listPayments", "createPayment", "getPayment"]

    def test_create_payment(self, spec):
        op = _op(spec, "createPayment")
        assert op.method == "POST"
        assert op.path == "/payments"
        assert op.request_body.type == "CreatePaymentRequest"
        assert op.request_body.required is True
        assert op.response.type == "PaymentIntent"
        assert op.response.status_code == 201
        assert op.errors == ["BAD_REQUEST", "UNAUTHORIZED", "RATE_LIMITED"]
        assert op.authentication.required is True
        assert op.tags == ["payments"]

    def test_list_payments(self, spec):
        op = _op(spec, "listPayments")
        limit, cursor = op.parameters
        assert (limit.name, limit.type, limit.location, limit.required) == ("limit", "integer", "query", False)
        assert limit.default == 10
        assert limit.validation.maximum == 100
        assert cursor.type == "string"
        assert op.response.type == "object"
        assert op.response.status_code == 200
        assert op.errors == ["UNAUTHORIZED"]

    def test_get_payment(self, spec):
        op = _op(spec, "getPayment")
        assert [(p.name, p.location, p.required) for p in op.parameters] == [("payment_id", "path", True)]
        assert op.response.type == "PaymentIntent"
        assert op.errors == ["NOT_FOUND"]

    def test_errors_are_deduplicated(self, spec):
        codes = [e.code for e in spec.errors]
        assert codes == ["UNAUTHORIZED", "BAD_REQUEST", "RATE_LIMITED", "NOT_FOUND"]
        rate_limited = next(e for e in spec.errors if e.code == "RATE_LIMITED")
        assert rate_limited.http_status == 429
        assert rate_limited.message == "RATE LIMITED"

    def test_authentication(self, spec):
        assert spec.authentication.type == "bearer"
        assert spec.authentication.required is True
        assert spec.authentication.details["bearerFormat"] == "JWT"

    def test_networks(self, spec):
        assert [(n.id, n.name, n.url) for n in spec.networks] == [
            ("server-0", "Production", "https://api.example.com/v1"),
            ("server-1", "Sandbox", "https://sandbox.example.com/v1"),
        ]

    def test_source(self, spec):
        assert spec.source.parser == "OpenAPIParser"
        assert spec.source.input_type == "openapi-3.0"
        assert spec.normalization_notes == []


class TestSwagger2:
    @pytest.fixture(scope="class")
    def spec(self):
        result = _parse(_load("petstore_swagger.yaml"), "swagger-2.0")
        assert result.success, result.errors
        return result.normalized

    def test_definitions_become_types(self, spec):
        assert spec.types["Pet"].type == "object"
        assert spec.types["Pets"].type == "array"
        assert spec.types["Pets"].items.type == "Pet"

    def test_synthesized_operation_id(self, spec):
        assert [op.id for op in spec.operations] == ["getPets", "createPet", "showPetById"]
        assert spec.operations[0].operation_id is None

    def test_body_parameter(self, spec):
        op = _op(spec, "createPet")
        assert op.request_body.type == "Pet"
        assert op.request_body.content_type == "application/json"
        assert op.response.type == "object"
        assert op.response.status_code == 201

    def test_shared_parameter_ref(self, spec):
        op = _op(spec, "showPetById")
        assert [(p.name, p.type, p.location) for p in op.parameters] == [("petId", "string", "path")]
        assert op.response.type == "Pet"
        assert op.errors == ["HTTP_418"]

    def test_unknown_status_error_definition(self, spec):
        teapot = next(e for e in spec.errors if e.code == "HTTP_418")
        assert teapot.http_status == 418

    def test_api_key_auth(self, spec):
        assert spec.authentication.type == "api_key"
        assert spec.authentication.required is True
        assert spec.authentication.details == {"in": "header", "name": "X-API-Key"}

    def test_network_from_host(self, spec):
        assert len(spec.networks) == 1
        assert spec.networks[0].url == "https://petstore.example.com/v1"

    def test_query_parameter_without_schema(self, spec):
        limit = _op(spec, "getPets").parameters[0]
        assert limit.type == "integer"
        assert limit.validation.maximum == 100


class TestStructuralErrors:
    def test_missing_version(self):
        result = _parse({"info": {"title": "x"}, "paths": {}})
        assert result.success is False
        assert result.errors[0].code == "MISSING_VERSION"

    def test_non_object_document(self):
        result = _parse(["openapi"])
        assert result.success is False
        assert result.errors[0].code == "INVALID_OPENAPI"

    def test_malformed_section(self):
        result = _parse({"openapi": "3.0.0", "servers": "https://x"})
        assert result.success is False
        assert result.errors[0].code == "INVALID_OPENAPI"

    def test_extension_keys_in_paths_are_ignored(self):
        raw = _minimal({
            "x-internal": True,
            "/a": {"get": {"operationId": "getA", "responses": {"200": {"description": "ok"}}}},
        })
        result = _parse(raw)
        assert result.success is True
        assert [op.id for op in result.normalized.operations] == ["getA"]
        assert result.warnings == []

    def test_non_object_path_item_is_skipped_with_warning(self):
        raw = _minimal({
            "/broken": "nope",
            "/a": {"get": {"operationId": "getA", "responses": {"200": {"description": "ok"}}}},
        })
        result = _parse(raw)
        assert result.success is True
        assert [op.id for op in result.normalized.operations] == ["getA"]
        assert [w.code for w in result.warnings] == ["INVALID_PATH_ITEM"]


class TestOperations:
    def test_operation_id_synthesis(self):
        assert synthesize_operation_id("get", "/users/{id}") == "getUsersid"
        assert synthesize_operation_id("delete", "/v1/order-items") == "deleteV1orderitems"

    def test_implied_path_parameters(self):
        raw = _minimal({"/orgs/{org}/repos/{repo}": {"get": {"responses": {"200": {"description": "ok"}}}}})
        op = _parse(raw).normalized.operations[0]
        assert [(p.name, p.type, p.required, p.location) for p in op.parameters] == [
            ("org", "string", True, "path"),
            ("repo", "string", True, "path"),
        ]

    def test_operation_parameter_overrides_path_level(self):
        raw = _minimal({
            "/items": {
                "parameters": [{"name": "limit", "in": "query", "schema": {"type": "string"}}],
                "get": {
                    "parameters": [{"name": "limit", "in": "query", "schema": {"type": "integer"}}],
                    "responses": {"200": {"description": "ok"}},
                },
            }
        })
        op = _parse(raw).normalized.operations[0]
        assert [(p.name, p.type) for p in op.parameters] == [("limit", "integer")]

    def test_response_prefers_2xx_over_first(self):
        raw = _minimal({
            "/jobs": {
                "post": {
                    "responses": {
                        "400": {"description": "bad"},
                        "202": {
                            "description": "accepted",
                            "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Job"}}},
                        },
                    }
                }
            }
        }, components={"schemas": {"Job": {"type": "object"}}})
        op = _parse(raw).normalized.operations[0]
        assert op.response.type == "Job"
        assert op.response.status_code == 202

    def test_response_falls_back_to_first_declared(self):
        raw = _minimal({"/x": {"get": {"responses": {"default": {"description": "whatever"}}}}})
        op = _parse(raw).normalized.operations[0]
        assert op.response.type == "object"
        assert op.response.status_code is None
        assert op.errors == []

    def test_head_falls_back_to_get(self):
        raw = _minimal({"/ping": {"head": {"responses": {"200": {"description": "ok"}}}}})
        op = _parse(raw).normalized.operations[0]
        assert op.method == "GET"
        assert op.id == "headPing"

    def test_security_variants(self):
        raw = _minimal({
            "/open": {"get": {"security": [], "responses": {}}},
            "/closed": {"get": {"security": [{"oauth": []}], "responses": {}}},
            "/inherited": {"get": {"responses": {}}},
        })
        ops = {op.path: op for op in _parse(raw).normalized.operations}
        assert ops["/open"].authentication.model_dump() == {"required": False, "type": "none"}
        assert ops["/closed"].authentication.model_dump() == {"required": True, "type": "custom"}
        assert ops["/inherited"].authentication is None


class TestTypes:
    def _types(self, schemas: dict):
        return _parse(_minimal({}, components={"schemas": schemas})).normalized.types

    def test_classification(self):
        types = self._types({
            "Tags": {"type": "array", "items": {"type": "string"}},
            "Color": {"type": "string", "enum": ["red", "green", None]},
            "Pet": {"oneOf": [{"$ref": "#/components/schemas/Cat"}, {"$ref": "#/components/schemas/Dog"}]},
            "Cat": {"type": "object"},
            "Dog": {"type": "object"},
            "Id": {"type": "string", "format": "uuid"},
            "Labels": {"type": "object", "additionalProperties": {"type": "string"}},
        })
        assert types["Tags"].type == "array"
        assert types["Color"].type == "enum"
        assert types["Color"].enum_values == ["red", "green", "null"]
        assert types["Pet"].type == "union"
        assert types["Pet"].union_types == ["Cat", "Dog"]
        assert types["Pet"].composition == "oneOf"
        assert types["Id"].type == "primitive"
        assert types["Id"].primitive_type == "string"
        assert types["Labels"].type == "map"
        assert types["Labels"].map_value_type == "string"

    def test_no_invented_descriptions_or_examples(self):
        types = self._types({"Thing": {"type": "object", "properties": {"label": {"type": "string"}}}})
        field = types["Thing"].fields["label"]
        assert field.description == ""
        assert field.example == "example"
        assert field.default is None
        assert field.validation is None

    def test_unresolvable_reference_is_a_warning(self):
        result = _parse(_minimal({}, components={"schemas": {
            "Order": {"type": "object", "properties": {"buyer": {"$ref": "#/components/schemas/Buyer"}}},
        }}))
        assert result.success is True
        codes = [w.code for w in result.warnings]
        assert codes == ["UNRESOLVABLE_TYPE_REFS"]
        assert "Buyer" in result.warnings[0].message

    def test_circular_reference_is_a_warning(self):
        result = _parse(_minimal({}, components={"schemas": {
            "Node": {"type": "object", "properties": {"next": {"$ref": "#/components/schemas/Node"}}},
        }}))
        assert result.success is True
        assert [w.code for w in result.warnings] == ["CIRCULAR_TYPES"]


class TestNetworks:
    def test_placeholder_network(self):
        spec = _parse(_minimal({})).normalized
        assert len(spec.networks) == 1
        network = spec.networks[0]
        assert (network.id, network.url, network.environment) == ("production", "{baseUrl}", "production")

    def test_no_security_scheme(self):
        spec = _parse(_minimal({})).normalized
        assert spec.authentication.type == "none"
        assert spec.authentication.required is False


class TestExceptionBoundary:
    def test_unexpected_error_becomes_parse_exception(self, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setattr("spec_normalizer.parser.swagger._extract_types", boom)
        result = _parse(_minimal({}))
        assert result.success is False
        assert result.errors[0].code == "PARSE_EXCEPTION"
        assert "kaboom" in result.errors[0].message
