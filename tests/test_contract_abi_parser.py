import json
from pathlib import Path

import pytest

from spec_normalizer.parser.base import InputSpec
from spec_normalizer.parser.contract_abi import ContractABIParser, normalize_solidity_type

FIXTURES = Path(__file__).parent / "fixtures"

ROUTER_METADATA = {
    "name": "UniswapV3Router",
    "version": "1.0.0",
    "description": "Uniswap V3 Swap Router",
}


def _router_abi() -> list:
    return json.loads((FIXTURES / "uniswap_v3_router.json").read_text(encoding="utf-8"))["abi"]


def _parse(raw, metadata=None):
    return ContractABIParser().parse(
        InputSpec(type="contract-abi", format="json", source="test", raw_content=raw, metadata=metadata)
    )


def _func(name: str, inputs=None, outputs=None, mutability="nonpayable") -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": inputs or [],
        "outputs": outputs or [],
    }


class TestNormalizeSolidityType:
    @pytest.mark.parametrize(
        "solidity, expected",
        [
            ("uint8", "number"),
            ("uint24", "number"),
            ("uint64", "number"),
            ("int24", "number"),
            ("uint128", "BigInt"),
            ("uint160", "BigInt"),
            ("uint256", "BigInt"),
            ("int256", "BigInt"),
            ("uint", "BigInt"),
            ("address", "Address"),
            ("address payable", "Address"),
            ("bytes32", "Bytes32"),
            ("bytes4", "string"),
            ("bytes", "bytes"),
            ("bool", "boolean"),
            ("string", "string"),
        ],
    )
    def test_scalar_types(self, solidity, expected):
        assert normalize_solidity_type(solidity) == expected

    def test_array_suffix_is_preserved(self):
        assert normalize_solidity_type("address[]") == "Address[]"
        assert normalize_solidity_type("uint8[4]") == "number[4]"
        assert normalize_solidity_type("bytes32[][2]") == "Bytes32[][2]"

    def test_unknown_passes_through(self):
        assert normalize_solidity_type("fixed128x18") == "fixed128x18"


class TestUniswapRouter:
    @pytest.fixture(scope="class")
    def spec(self):
        result = _parse(_router_abi(), ROUTER_METADATA)
        assert result.success, result.errors
        return result.normalized

    def test_product(self, spec):
        assert spec.product.name == "uniswapv3router"
        assert spec.product.version == "1.0.0"
        assert spec.product.api_version == "solidity-1.0"
        assert spec.product.description == "Uniswap V3 Swap Router"

    def test_operations(self, spec):
        assert [op.id for op in spec.operations] == ["exactInputSingle", "exactOutputSingle", "estimateGas"]
        for op in spec.operations:
            assert op.method == "function"
            assert op.function_name == op.id
            assert op.errors == ["REVERT", "GAS_ERROR", "INVALID_ADDRESS"]

    def test_payable_function_requires_wallet(self, spec):
        op = spec.operations[0]
        assert op.authentication.model_dump() == {"required": True, "type": "wallet"}
        assert op.tags == ["payable"]
        assert op.response.type == "BigInt"
        assert op.description == "Execute a swap with exact input"

    def test_view_function_is_read_only(self, spec):
        op = spec.operations[2]
        assert op.authentication.required is False
        assert op.tags == ["view"]
        assert [(p.name, p.type, p.location) for p in op.parameters] == [
            ("tokenIn", "Address", "input"),
            ("tokenOut", "Address", "input"),
            ("amountIn", "BigInt", "input"),
        ]

    def test_tuple_parameter_becomes_struct(self, spec):
        param = spec.operations[0].parameters[0]
        assert param.name == "params"
        assert param.type == "ExactInputSingleParams"
        struct = spec.types["ExactInputSingleParams"]
        assert struct.type == "object"
        assert struct.fields["fee"].type == "number"
        assert struct.fields["sqrtPriceLimitX96"].type == "BigInt"
        assert struct.fields["tokenIn"].type == "Address"
        assert struct.fields["tokenIn"].description == "Input token address"
        assert struct.additional_properties is False

    def test_types(self, spec):
        assert set(spec.types) == {
            "Address",
            "BigInt",
            "Bytes32",
            "SwapEvent",
            "ExactInputSingleParams",
            "ExactOutputSingleParams",
        }
        assert spec.types["Address"].primitive_type == "string"
        assert spec.types["BigInt"].primitive_type == "bigint"
        assert spec.types["Bytes32"].primitive_type == "bytes"

    def test_event_type(self, spec):
        event = spec.types["SwapEvent"]
        assert list(event.fields) == ["sender", "amount0", "amount1", "sqrtPriceX96", "tick"]
        assert event.fields["tick"].type == "number"
        assert event.fields["amount0"].type == "BigInt"

    def test_errors(self, spec):
        assert [e.code for e in spec.errors] == [
            "REVERT",
            "GAS_ERROR",
            "INVALID_ADDRESS",
            "InsufficientBalance",
            "TooMuchSlippage",
        ]
        custom = spec.errors[3]
        assert custom.message == "Insufficient Balance"
        assert custom.http_status is None

    def test_authentication_and_networks(self, spec):
        assert spec.authentication.type == "custom"
        assert spec.authentication.required is True
        assert spec.networks == []

    def test_contract(self, spec):
        contract = spec.contract
        assert contract.name == "uniswapv3router"
        assert [p.name for p in contract.constructor.inputs] == ["factory", "positionManager", "weth9"]
        assert set(contract.functions) == {"exactInputSingle", "exactOutputSingle", "estimateGas"}
        assert contract.functions["estimateGas"].state_mutability == "view"
        assert contract.functions["estimateGas"].outputs[0].name == "gasEstimate"
        swap = contract.events["Swap"]
        assert [i.indexed for i in swap.inputs] == [True, False, False, False, False]

    def test_examples_from_solidity_table(self, spec):
        params = spec.operations[2].parameters
        assert params[0].example == "0x1234567890123456789012345678901234567890"
        assert params[2].example == "1000000000000000000"


class TestStructuralErrors:
    def test_object_is_invalid_abi(self):
        result = _parse({})
        assert result.success is False
        assert result.errors[0].code == "INVALID_ABI"

    def test_malformed_entry(self):
        result = _parse([_func("ok"), {"type": "function", "inputs": "nope"}])
        assert result.success is False
        assert result.errors[0].code == "INVALID_ABI"
        assert result.errors[0].location == "[1]"

    def test_empty_abi_is_a_warning(self):
        result = _parse([])
        assert result.success is True
        assert [w.code for w in result.warnings] == ["EMPTY_ABI"]
        assert result.normalized.operations == []
        assert result.normalized.product.name == "smartcontract"


class TestFunctions:
    def test_return_types(self):
        result = _parse([
            _func("nothing"),
            _func("single", outputs=[{"name": "", "type": "bool"}]),
            _func("pair", outputs=[{"name": "a", "type": "uint256"}, {"name": "b", "type": "address"}]),
        ])
        assert [op.response.type for op in result.normalized.operations] == ["null", "boolean", "Tuple"]

    def test_unnamed_inputs_get_positional_names(self):
        result = _parse([_func("transfer", inputs=[{"type": "address"}, {"type": "uint256"}])])
        params = result.normalized.operations[0].parameters
        assert [p.name for p in params] == ["param0", "param1"]

    def test_legacy_constant_flag(self):
        result = _parse([{"type": "function", "name": "owner", "constant": True, "inputs": [], "outputs": []}])
        op = result.normalized.operations[0]
        assert op.tags == ["view"]
        assert op.authentication.required is False

    def test_fallback_and_receive(self):
        result = _parse([
            {"type": "fallback", "stateMutability": "payable"},
            {"type": "receive", "stateMutability": "payable"},
        ])
        assert [op.id for op in result.normalized.operations] == ["fallback", "receive"]

    def test_unnamed_function_is_skipped(self):
        result = _parse([{"type": "function", "inputs": [], "outputs": []}, _func("ok")])
        assert result.success is True
        assert [op.id for op in result.normalized.operations] == ["ok"]
        assert [w.code for w in result.warnings] == ["UNNAMED_FUNCTION"]

    def test_struct_name_from_internal_type(self):
        result = _parse([
            _func("mint", inputs=[{
                "name": "params",
                "type": "tuple",
                "internalType": "struct INonfungiblePositionManager.MintParams",
                "components": [{"name": "token0", "type": "address"}],
            }]),
        ])
        assert result.normalized.operations[0].parameters[0].type == "MintParams"
        assert "MintParams" in result.normalized.types

    def test_tuple_array_keeps_suffix(self):
        result = _parse([
            _func("multicall", inputs=[{
                "name": "calls",
                "type": "tuple[]",
                "components": [{"name": "target", "type": "address"}, {"name": "data", "type": "bytes"}],
            }]),
        ])
        assert result.normalized.operations[0].parameters[0].type == "MulticallCalls[]"
        assert result.normalized.types["MulticallCalls"].fields["data"].type == "bytes"


class TestDuplicates:
    def test_overloaded_event_is_duplicate_type(self):
        result = _parse([
            {"type": "event", "name": "Transfer", "inputs": [{"name": "to", "type": "address"}]},
            {"type": "event", "name": "Transfer", "inputs": [{"name": "id", "type": "uint256"}]},
        ])
        assert result.success is False
        assert result.errors[0].code == "DUPLICATE_TYPE_NAME"

    def test_conflicting_struct_shapes(self):
        struct = "struct Pool.Key"
        result = _parse([
            _func("a", inputs=[{"name": "k", "type": "tuple", "internalType": struct,
                                "components": [{"name": "x", "type": "uint8"}]}]),
            _func("b", inputs=[{"name": "k", "type": "tuple", "internalType": struct,
                                "components": [{"name": "y", "type": "address"}]}]),
        ])
        assert result.success is False
        assert [e.code for e in result.errors] == ["DUPLICATE_TYPE_NAME"]

    def test_unnamed_tuple_outputs_get_positional_names(self):
        result = _parse([
            _func("getPair", outputs=[
                {"type": "tuple", "components": [{"name": "x", "type": "uint8"}]},
                {"type": "tuple", "components": [{"name": "y", "type": "address"}]},
            ], mutability="view"),
        ])
        assert result.success is True, result.errors
        assert {"GetPairOutput0", "GetPairOutput1"} <= set(result.normalized.types)
        assert result.normalized.operations[0].response.type == "Tuple"
        outputs = result.normalized.contract.functions["getPair"].outputs
        assert [o.type for o in outputs] == ["GetPairOutput0", "GetPairOutput1"]

    def test_single_unnamed_tuple_output(self):
        result = _parse([
            _func("slot0", outputs=[{"type": "tuple", "components": [{"name": "tick", "type": "int24"}]}]),
        ])
        assert result.success is True, result.errors
        assert result.normalized.operations[0].response.type == "Slot0Output0"
        assert result.normalized.contract.functions["slot0"].outputs[0].type == "Slot0Output0"

    def test_unnamed_tuple_inputs_get_positional_names(self):
        result = _parse([
            _func("setPair", inputs=[
                {"type": "tuple", "components": [{"name": "x", "type": "uint8"}]},
                {"type": "tuple", "components": [{"name": "y", "type": "address"}]},
            ]),
        ])
        assert result.success is True, result.errors
        params = result.normalized.operations[0].parameters
        assert [p.type for p in params] == ["SetPairParam0", "SetPairParam1"]

    def test_same_struct_name_in_different_contracts(self):
        result = _parse([
            _func("addLiquidity", inputs=[{"name": "p", "type": "tuple", "internalType": "struct IPool.Params",
                                           "components": [{"name": "x", "type": "uint8"}]}]),
            _func("deposit", inputs=[{"name": "p", "type": "tuple", "internalType": "struct IVault.Params",
                                      "components": [{"name": "y", "type": "address"}]}]),
        ])
        assert result.success is True, result.errors
        assert [op.parameters[0].type for op in result.normalized.operations] == ["Params", "IVaultParams"]
        assert list(result.normalized.types["IVaultParams"].fields) == ["y"]
        assert result.normalized.contract.functions["deposit"].inputs[0].type == "IVaultParams"

    def test_shared_struct_is_not_a_duplicate(self):
        struct = "struct Pool.Key"
        component = {"name": "x", "type": "uint8"}
        result = _parse([
            _func("a", inputs=[{"name": "k", "type": "tuple", "internalType": struct, "components": [component]}]),
            _func("b", inputs=[{"name": "k", "type": "tuple", "internalType": struct, "components": [component]}]),
        ])
        assert result.success is True
        assert result.normalized.operations[1].parameters[0].type == "Key"


class TestCustomErrors:
    def test_unnamed_error_is_skipped(self):
        result = _parse([{"type": "error", "inputs": []}])
        assert result.success is True
        assert [w.code for w in result.warnings] == ["UNNAMED_ERROR"]
        assert len(result.normalized.errors) == 3
