"""
Transaction Builder
Assembles unsigned contract deployment requests
"""

import re
from typing import Any, Dict, Sequence

from eth_abi import encode, is_encodable
from eth_abi.exceptions import EncodingError
from loguru import logger
from web3 import Web3

from deployer.exceptions import ValidationError
from deployer.types import (
    ContractArtifact,
    ConstructorSpec,
    DeploymentRequest,
    ResourceLimits,
    TransactionParams,
)


_ARRAY_SUFFIX = re.compile(r'^(.*)\[(\d*)\]$')


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _normalize_arg(abi_type: str, value: Any) -> Any:
    """
    Convert caller-friendly values into what eth-abi expects

    Hex strings become bytes for bytes/bytesN, addresses are checksummed,
    arrays are normalised element by element.
    """
    array = _ARRAY_SUFFIX.match(abi_type)
    if array:
        if not isinstance(value, (list, tuple)):
            return value
        return [_normalize_arg(array.group(1), v) for v in value]

    if abi_type == 'address' and isinstance(value, str) and Web3.is_address(value):
        return Web3.to_checksum_address(value)

    if abi_type.startswith('bytes') and isinstance(value, str) and value.startswith('0x'):
        try:
            return Web3.to_bytes(hexstr=value)
        except ValueError:
            return value

    return value


def validate_limits(limits: ResourceLimits) -> None:
    """
    Check resource limits before any network cost is incurred

    Raises:
        ValidationError: cause 'resource_limits'
    """
    if not _is_int(limits.compute_limit) or limits.compute_limit <= 0:
        raise ValidationError(
            f"Compute limit must be a positive integer, got {limits.compute_limit!r}",
            cause='resource_limits'
        )
    if not _is_int(limits.endowment) or limits.endowment < 0:
        raise ValidationError(
            f"Endowment must be a non-negative integer, got {limits.endowment!r}",
            cause='resource_limits'
        )
    deposit = limits.storage_deposit_limit
    if deposit is not None and (not _is_int(deposit) or deposit < 0):
        raise ValidationError(
            f"Storage deposit limit must be None or a non-negative integer, got {deposit!r}",
            cause='resource_limits'
        )


class DeploymentRequestBuilder:
    """
    Builds DeploymentRequests from an artifact, a constructor and its arguments

    Validation is local only: nothing here touches the network.
    """

    def build(
        self,
        artifact: ContractArtifact,
        constructor: ConstructorSpec,
        args: Sequence[Any],
        limits: ResourceLimits,
        sender: str
    ) -> DeploymentRequest:
        """
        Build an unsigned deployment request

        Args:
            artifact: Contract bytecode and metadata
            constructor: Constructor chosen by select_constructor
            args: Constructor argument values, in declaration order
            limits: Compute limit, storage deposit limit, endowment
            sender: Public address of the signing credential

        Returns:
            DeploymentRequest

        Raises:
            ValidationError: Arity mismatch, type mismatch, bad limits or bad sender
        """
        if not isinstance(sender, str) or not Web3.is_address(sender):
            raise ValidationError(f"Sender is not a valid address: {sender!r}", cause='sender')

        validate_limits(limits)
        if limits.endowment > 0 and constructor.payable is False:
            raise ValidationError(
                f"Constructor '{constructor.name}' is not payable but endowment is {limits.endowment}",
                cause='resource_limits'
            )

        args = list(args)
        types = list(constructor.param_types)
        if len(args) != len(types):
            raise ValidationError(
                f"Constructor '{constructor.name}' takes {len(types)} arguments, got {len(args)}",
                cause='arity'
            )

        values = []
        for param, value in zip(constructor.params, args):
            normalized = _normalize_arg(param.type, value)
            if not is_encodable(param.type, normalized):
                raise ValidationError(
                    f"Argument '{param.name}' of type {param.type} cannot hold {value!r}",
                    cause='type'
                )
            values.append(normalized)

        try:
            encoded_args = encode(types, values)
        except EncodingError as e:
            raise ValidationError(f"Failed to encode constructor arguments: {e}", cause='type') from e

        request = DeploymentRequest(
            artifact=artifact,
            constructor=constructor,
            encoded_args=encoded_args,
            limits=limits,
            sender=Web3.to_checksum_address(sender),
        )

        logger.debug(
            f"Built deployment request: constructor={constructor.name}, "
            f"payload={len(request.deploy_data)} bytes, gas={limits.compute_limit}"
        )
        return request


def build_transaction_dict(
    request: DeploymentRequest,
    params: TransactionParams,
    fees: Dict[str, int]
) -> Dict:
    """
    Transaction fields for a contract creation (no 'to')

    Args:
        request: Validated deployment request
        params: Nonce and chain id for the sender
        fees: maxFeePerGas / maxPriorityFeePerGas from GasCalculator

    Returns:
        Transaction dict ready for signing
    """
    return {
        'nonce': params.nonce,
        'gas': request.limits.compute_limit,
        'maxFeePerGas': fees['maxFeePerGas'],
        'maxPriorityFeePerGas': fees['maxPriorityFeePerGas'],
        'value': request.limits.endowment,
        'data': request.deploy_data,
        'chainId': params.chain_id,
    }
