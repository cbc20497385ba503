"""
Contract Artifacts
Loads compiled contract bundles (bytecode + constructor metadata)
"""

import json
from pathlib import Path
from typing import Any, Dict, Union

from loguru import logger
from web3 import Web3

from .exceptions import ArtifactError
from .types import ContractArtifact


def _decode_bytecode(raw: Any, source: str) -> bytes:
    if isinstance(raw, dict):
        # solc standard JSON nests the code under "object"
        raw = raw.get('object')
    if not isinstance(raw, str) or not raw.strip():
        raise ArtifactError(f"Missing bytecode in contract bundle: {source}")

    hex_str = raw.strip()
    if not hex_str.startswith(('0x', '0X')):
        hex_str = '0x' + hex_str

    try:
        bytecode = Web3.to_bytes(hexstr=hex_str)
    except ValueError as e:
        raise ArtifactError(f"Bytecode is not valid hex in {source}: {e}") from e

    if not bytecode:
        raise ArtifactError(f"Empty bytecode in contract bundle: {source}")
    return bytecode


def artifact_from_dict(data: Dict[str, Any], source: str = "<dict>") -> ContractArtifact:
    """
    Build a ContractArtifact from a parsed bundle

    Accepted layouts:
    - hardhat / solc artifact: {"abi": [...], "bytecode": "0x..."}
    - ink! contract bundle: {"source": {"wasm": "0x..."}, "spec": {"constructors": [...]}}

    Args:
        data: Parsed JSON bundle
        source: Where the bundle came from (for error messages)

    Returns:
        ContractArtifact

    Raises:
        ArtifactError: If bytecode or metadata is missing
    """
    if not isinstance(data, dict):
        raise ArtifactError(f"Contract bundle must be a JSON object: {source}")

    if 'source' in data and isinstance(data['source'], dict):
        bytecode = _decode_bytecode(data['source'].get('wasm'), source)
        if 'spec' not in data:
            raise ArtifactError(f"Missing 'spec' metadata in contract bundle: {source}")
        metadata = data
        name = data.get('contract', {}).get('name')
    elif 'abi' in data:
        bytecode = _decode_bytecode(data.get('bytecode'), source)
        metadata = data['abi']
        name = data.get('contractName')
    else:
        raise ArtifactError(f"Missing constructor metadata in contract bundle: {source}")

    return ContractArtifact(bytecode=bytecode, metadata=metadata, name=name)


def load_artifact(path: Union[str, Path]) -> ContractArtifact:
    """
    Load a contract bundle from disk

    Args:
        path: Path to the JSON bundle

    Returns:
        ContractArtifact
    """
    artifact_path = Path(path)
    if not artifact_path.exists():
        raise ArtifactError(f"Contract artifact not found: {artifact_path}")

    try:
        with open(artifact_path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ArtifactError(f"Contract artifact is not valid JSON: {artifact_path}: {e}") from e

    artifact = artifact_from_dict(data, str(artifact_path))
    logger.info(
        f"Loaded artifact {artifact.name or artifact_path.stem} "
        f"({len(artifact.bytecode)} bytes of code)"
    )
    return artifact
