"""Blockchain network metadata parser.

Converts chain descriptors into NormalizedNetwork entries, and ships a
hand-maintained table of well-known chains for callers that want defaults.
"""

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from spec_normalizer.parser.base import (
    Environment,
    InputSpec,
    NormalizedAuth,
    NormalizedChainMetadata,
    NormalizedNetwork,
    NormalizedProductInfo,
    NormalizedSpec,
    ParserResult,
)
from spec_normalizer.parser.utils import ParseNotes, source_info

logger = logging.getLogger(__name__)


class ChainEntry(BaseModel):
    """Loose shape of one chain descriptor."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | int | None = None
    chain_id: str | int | None = Field(default=None, alias="chainId")
    name: str | None = None
    rpc_endpoints: list[str] | str | None = Field(default=None, alias="rpcEndpoints")
    rpc_url: str | None = Field(default=None, alias="rpcUrl")
    endpoint: str | None = None
    environment: str | None = None

    @property
    def identifier(self) -> str | None:
        value = self.id if self.id not in (None, "") else self.chain_id
        return None if value in (None, "") else str(value)

    @property
    def rpc(self) -> str | None:
        if isinstance(self.rpc_endpoints, list):
            if self.rpc_endpoints:
                return self.rpc_endpoints[0]
        elif self.rpc_endpoints:
            return self.rpc_endpoints
        return self.rpc_url or self.endpoint or None


def classify_environment(name: str, explicit: str | None = None) -> Environment:
    """Keyword heuristic: the explicit field wins, then the chain name."""
    if explicit:
        lower = explicit.lower()
        if "test" in lower:
            return "test"
        if "stag" in lower:
            return "staging"
        return "production"

    lower = name.lower()
    if any(word in lower for word in ("test", "sepolia", "goerli")):
        return "test"
    if "staging" in lower or "stage" in lower:
        return "staging"
    return "production"


class ChainMetadataParser:
    """Parser for chain-metadata inputs (rawContent must be a JSON object)."""

    name = "ChainMetadataParser"

    def can_parse(self, input_spec: InputSpec) -> bool:
        return input_spec.type == "chain-metadata"

    def parse(self, input_spec: InputSpec) -> ParserResult:
        notes = ParseNotes()
        try:
            return self._parse(input_spec, notes)
        except Exception as e:
            logger.exception("Unexpected error while parsing %s", input_spec.source)
            notes.error("PARSE_EXCEPTION", f"Unexpected error: {e}")
            return notes.failure()

    def _parse(self, input_spec: InputSpec, notes: ParseNotes) -> ParserResult:
        metadata = input_spec.raw_content
        if not isinstance(metadata, dict):
            notes.error("INVALID_METADATA", "Chain metadata must be a JSON object")
            return notes.failure()

        networks = _extract_networks(metadata, notes)
        if not networks:
            notes.error("NO_NETWORKS", "No valid networks found in chain metadata")
            return notes.failure()

        spec = NormalizedSpec(
            product=NormalizedProductInfo(
                name="chain-metadata",
                version="1.0.0",
                api_version="1.0",
                description="Blockchain network metadata",
            ),
            authentication=NormalizedAuth(type="none", required=False),
            networks=networks,
            source=source_info(input_spec, self.name),
            normalization_notes=notes.warnings,
        )
        logger.debug("Parsed chain metadata %s: %d networks", input_spec.source, len(networks))
        return notes.result(spec)


def _candidates(metadata: dict) -> list[Any]:
    if isinstance(metadata.get("chains"), list):
        return metadata["chains"]
    if "chain" in metadata:
        return [metadata["chain"]]
    return [metadata]


def _extract_networks(metadata: dict, notes: ParseNotes) -> list[NormalizedNetwork]:
    networks = []
    for idx, chain in enumerate(_candidates(metadata)):
        if not isinstance(chain, dict):
            notes.warn("INVALID_CHAIN", f"Chain at index {idx} is invalid", location=f"chains[{idx}]")
            continue
        try:
            entry = ChainEntry.model_validate(chain)
        except ValidationError:
            notes.warn("INVALID_CHAIN", f"Chain at index {idx} is invalid", location=f"chains[{idx}]")
            continue

        network = _normalize_chain(entry, idx, notes)
        if network:
            networks.append(network)
    return networks


def _normalize_chain(chain: ChainEntry, idx: int, notes: ParseNotes) -> NormalizedNetwork | None:
    identifier = chain.identifier
    if identifier is None:
        notes.warn("MISSING_CHAIN_ID", "Chain missing id or chainId", location=f"chains[{idx}]")
        return None

    rpc = chain.rpc
    if rpc is None:
        notes.warn("MISSING_RPC", f"Chain {identifier} missing RPC endpoint", location=f"chains[{idx}]")
        return None

    name = chain.name or f"Chain {identifier}"
    return NormalizedNetwork(
        id=identifier.lower(),
        name=name,
        type="rpc",
        url=rpc,
        chain_id=str(chain.chain_id) if chain.chain_id not in (None, "") else identifier,
        environment=classify_environment(name, chain.environment),
    )


# ---------------------------------------------------------------------------
# Predefined chains
# ---------------------------------------------------------------------------

ETHEREUM_MAINNET = NormalizedChainMetadata(
    id="ethereum",
    name="Ethereum Mainnet",
    type="evm",
    chain_id="1",
    rpc_endpoints=["https://eth.llamarpc.com", "https://eth-mainnet.alchemyapi.io/v2"],
    block_time=12000,
    finality=15,
    native_token="ETH",
    explorer="https://etherscan.io",
)

ETHEREUM_SEPOLIA = NormalizedChainMetadata(
    id="ethereum-sepolia",
    name="Ethereum Sepolia Testnet",
    type="evm",
    chain_id="11155111",
    rpc_endpoints=["https://sepolia.infura.io/v3"],
    block_time=12000,
    finality=15,
    native_token="ETH",
    explorer="https://sepolia.etherscan.io",
)

POLYGON_MAINNET = NormalizedChainMetadata(
    id="polygon",
    name="Polygon Mainnet",
    type="evm",
    chain_id="137",
    rpc_endpoints=["https://polygon.llamarpc.com", "https://polygon-rpc.com"],
    block_time=2000,
    finality=256,
    native_token="MATIC",
    explorer="https://polygonscan.com",
)

ARBITRUM_ONE = NormalizedChainMetadata(
    id="arbitrum",
    name="Arbitrum One",
    type="evm",
    chain_id="42161",
    rpc_endpoints=["https://arb1.arbitrum.io/rpc"],
    block_time=250,
    finality=1,
    native_token="ARB",
    explorer="https://arbiscan.io",
)

OPTIMISM_MAINNET = NormalizedChainMetadata(
    id="optimism",
    name="Optimism Mainnet",
    type="evm",
    chain_id="10",
    rpc_endpoints=["https://mainnet.optimism.io"],
    block_time=2000,
    finality=1,
    native_token="OP",
    explorer="https://optimistic.etherscan.io",
)

SOLANA_MAINNET = NormalizedChainMetadata(
    id="solana",
    name="Solana Mainnet",
    type="solana",
    chain_id="5eykt4UsFv2P6ysrq7IvVTgs5kfrqQ",
    rpc_endpoints=["https://api.mainnet-beta.solana.com", "https://solana.llamarpc.com"],
    block_time=400,
    finality=32,
    native_token="SOL",
    explorer="https://solscan.io",
)

SOLANA_DEVNET = NormalizedChainMetadata(
    id="solana-devnet",
    name="Solana Devnet",
    type="solana",
    chain_id="EtWTRABZaoDmUwtDrhAvbtFroJAzsCvVf5KoNGRNvQ",
    rpc_endpoints=["https://api.devnet.solana.com"],
    block_time=400,
    finality=32,
    native_token="SOL",
    explorer="https://solscan.io/?cluster=devnet",
)

PREDEFINED_CHAINS: dict[str, NormalizedChainMetadata] = {
    "ethereum": ETHEREUM_MAINNET,
    "ethereum-sepolia": ETHEREUM_SEPOLIA,
    "polygon": POLYGON_MAINNET,
    "arbitrum": ARBITRUM_ONE,
    "optimism": OPTIMISM_MAINNET,
    "solana": SOLANA_MAINNET,
    "solana-devnet": SOLANA_DEVNET,
}


def get_predefined_chain(chain_id: str) -> NormalizedChainMetadata | None:
    return PREDEFINED_CHAINS.get(chain_id.lower())


def chain_to_network(chain: NormalizedChainMetadata) -> NormalizedNetwork:
    """Default network configuration for a predefined chain."""
    return NormalizedNetwork(
        id=chain.id,
        name=chain.name,
        type="rpc",
        url=chain.rpc_endpoints[0],
        chain_id=chain.chain_id,
        environment=classify_environment(chain.name),
    )
