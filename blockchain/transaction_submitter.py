"""
Transaction Submitter
Signs deployment requests locally and broadcasts them exactly once
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from deployer.exceptions import ValidationError
from deployer.types import DeploymentRequest, SubmissionHandle, TransactionParams
from deployer.wallet_manager import SigningCredential
from utils.gas_calculator import GasCalculator

from .connection import ChainConnection
from .transaction_builder import build_transaction_dict


@dataclass(frozen=True)
class SignedDeployment:
    """Encoded signed transaction plus the identity needed to track it"""

    raw_transaction: bytes
    tx_hash: str
    sender: str
    nonce: int


class TransactionSubmitter:
    """
    Signs and submits deployment transactions

    No retries: resubmitting the same content and nonce is left to the
    caller, who alone knows whether it would duplicate a deployment.
    """

    def __init__(self, connection: ChainConnection, gas_calculator: Optional[GasCalculator] = None):
        """
        Initialize Transaction Submitter

        Args:
            connection: Node connection used for chain context and broadcast
            gas_calculator: Fee policy (defaults to GasCalculator())
        """
        self.connection = connection
        self.gas_calculator = gas_calculator or GasCalculator()

    def sign(
        self,
        request: DeploymentRequest,
        credential: SigningCredential,
        params: TransactionParams
    ) -> SignedDeployment:
        """
        Sign a deployment request (local only, no network access)

        Args:
            request: Validated deployment request
            credential: Credential whose address must equal request.sender
            params: Nonce, chain id and fee data for the sender

        Returns:
            SignedDeployment
        """
        if credential.address != request.sender:
            raise ValidationError(
                f"Credential {credential.address} does not match request sender {request.sender}",
                cause='sender'
            )

        fees = self.gas_calculator.fee_params(params, request.limits)
        transaction = build_transaction_dict(request, params, fees)
        signed = credential.sign_transaction(transaction)

        return SignedDeployment(
            raw_transaction=bytes(signed.raw_transaction),
            tx_hash='0x' + bytes(signed.hash).hex(),
            sender=request.sender,
            nonce=params.nonce,
        )

    async def submit(self, request: DeploymentRequest, credential: SigningCredential) -> SubmissionHandle:
        """
        Sign and broadcast a deployment request

        Args:
            request: Validated deployment request
            credential: Signing credential

        Returns:
            SubmissionHandle for status tracking

        Raises:
            ChainConnectionError: Node unreachable or transaction rejected before pooling
            ValidationError: Credential mismatch or fee ceiling below the current minimum
        """
        params = await self.connection.get_transaction_params(request.sender)
        signed = self.sign(request, credential, params)

        logger.info(f"Submitting deployment from {signed.sender} (nonce {signed.nonce})")
        handle = await self.connection.submit(signed.raw_transaction, signed.sender, signed.nonce)

        if handle.tx_hash.lower() != signed.tx_hash.lower():
            logger.warning(f"Node reported hash {handle.tx_hash}, expected {signed.tx_hash}")
        return handle
