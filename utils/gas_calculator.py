"""
Gas Calculator
EIP-1559 fee parameters bounded by the deployment's resource limits
"""

from typing import Dict, Optional

from loguru import logger
from web3 import Web3

from deployer.exceptions import ValidationError
from deployer.types import ResourceLimits, TransactionParams


class GasCalculator:
    """
    Computes maxFeePerGas / maxPriorityFeePerGas for a deployment

    The base fee is buffered so the transaction stays includable if the base
    fee rises for a few blocks. A storage deposit limit caps the total fee
    the deployment may burn: compute_limit * maxFeePerGas <= limit.
    """

    def __init__(
        self,
        base_fee_multiplier: float = 2.0,
        max_fee_gwei: Optional[float] = None
    ):
        """
        Initialize Gas Calculator

        Args:
            base_fee_multiplier: Headroom applied to the latest base fee
            max_fee_gwei: Absolute ceiling on maxFeePerGas (None = no ceiling)
        """
        if base_fee_multiplier < 1:
            raise ValueError("base_fee_multiplier must be >= 1")
        self.base_fee_multiplier = base_fee_multiplier
        self.max_fee_wei = Web3.to_wei(max_fee_gwei, 'gwei') if max_fee_gwei is not None else None

    def fee_params(self, params: TransactionParams, limits: ResourceLimits) -> Dict[str, int]:
        """
        Get EIP-1559 fee parameters

        Args:
            params: Chain context holding the latest base fee and suggested tip
            limits: Deployment resource limits

        Returns:
            Dict with maxFeePerGas and maxPriorityFeePerGas in wei

        Raises:
            ValidationError: If the limits cannot cover the current minimum fee
        """
        priority_fee = params.priority_fee
        max_fee = int(params.base_fee * self.base_fee_multiplier) + priority_fee
        minimum = params.base_fee + priority_fee

        ceilings = []
        if self.max_fee_wei is not None:
            ceilings.append(self.max_fee_wei)
        if limits.storage_deposit_limit is not None:
            ceilings.append(limits.storage_deposit_limit // limits.compute_limit)

        for ceiling in ceilings:
            if ceiling < minimum:
                raise ValidationError(
                    f"Fee ceiling {ceiling} wei/gas is below the current minimum {minimum} wei/gas",
                    cause='resource_limits'
                )
            max_fee = min(max_fee, ceiling)

        logger.debug(
            f"Fee params: maxFeePerGas={Web3.from_wei(max_fee, 'gwei')} gwei, "
            f"tip={Web3.from_wei(priority_fee, 'gwei')} gwei"
        )
        return {
            'maxFeePerGas': max_fee,
            'maxPriorityFeePerGas': priority_fee,
        }
