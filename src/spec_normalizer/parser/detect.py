"""Load interface documents from disk and auto-detect their input type."""

from pathlib import Path
from typing import Any

import yaml

from spec_normalizer.parser.base import InputSpec, InputSpecType

CHAIN_KEYS = ("chains", "chain", "chainId", "rpcUrl")


class DocumentLoadError(ValueError):
    """The file is not a JSON/YAML document."""


def detect_input_type(data: Any) -> InputSpecType:
    """Detect the InputSpec type of an already decoded document.

    Returns 'custom' when nothing matches; no parser claims that type.
    """
    if isinstance(data, list):
        return "contract-abi"
    if not isinstance(data, dict):
        return "custom"

    if data.get("openapi"):
        return "openapi-3.1" if str(data["openapi"]).startswith("3.1") else "openapi-3.0"
    if data.get("swagger"):
        return "swagger-2.0"
    # Compiler / framework artifact wrapping the ABI
    if isinstance(data.get("abi"), list):
        return "contract-abi"
    if any(key in data for key in CHAIN_KEYS):
        return "chain-metadata"
    return "custom"


def read_document(file_path: Path) -> Any:
    """Decode a JSON or YAML file. JSON is valid YAML, so one loader covers both."""
    text = file_path.read_text(encoding="utf-8")
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentLoadError(f"{file_path}: not a JSON/YAML document ({e})") from e


def load_input_spec(file_path: Path, input_type: str = "auto") -> InputSpec:
    """Read a document and wrap it as an InputSpec ready for normalization."""
    data = read_document(file_path)
    spec_type = detect_input_type(data) if input_type == "auto" else input_type

    metadata = None
    if spec_type == "contract-abi" and isinstance(data, dict) and isinstance(data.get("abi"), list):
        metadata = {"name": data.get("contractName") or file_path.stem}
        data = data["abi"]
    elif spec_type == "contract-abi":
        metadata = {"name": file_path.stem}

    return InputSpec(
        type=spec_type,
        format="json" if file_path.suffix.lower() == ".json" else "yaml",
        source=str(file_path),
        raw_content=data,
        metadata=metadata,
    )
