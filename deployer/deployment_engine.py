"""
Deployment Engine
Orchestrates constructor selection, request building, submission and tracking
"""

import asyncio
from typing import Any, Optional, Sequence

from loguru import logger

from blockchain.connection import ChainConnection
from blockchain.transaction_builder import DeploymentRequestBuilder
from blockchain.transaction_submitter import TransactionSubmitter
from monitoring.status_tracker import StatusTracker
from utils.gas_calculator import GasCalculator

from .constructor_selector import SelectionKey, select_constructor
from .exceptions import ChainConnectionError, SelectionError, ValidationError
from .types import (
    DEFAULT_RESOURCE_LIMITS,
    ContractArtifact,
    DeploymentFailure,
    DeploymentResult,
    FailureKind,
    ResourceLimits,
    SubmissionHandle,
)
from .wallet_manager import SigningCredential


class ContractDeployer:
    """
    One deployment attempt

    Every failure comes back as a DeploymentFailure value. Nothing is
    retried: the transaction is broadcast at most once per instance, and a
    caller wanting another attempt builds a new ContractDeployer. Instances
    may share one connection; they share no mutable state.
    """

    def __init__(
        self,
        connection: ChainConnection,
        credential: SigningCredential,
        limits: Optional[ResourceLimits] = None,
        gas_calculator: Optional[GasCalculator] = None
    ):
        """
        Initialize Contract Deployer

        Args:
            connection: Node connection (may be shared between deployers)
            credential: Signing credential for the deploying account
            limits: Resource limits (defaults to DEFAULT_RESOURCE_LIMITS)
            gas_calculator: Fee policy passed to the submitter
        """
        self.connection = connection
        self.credential = credential
        self.limits = limits or DEFAULT_RESOURCE_LIMITS

        self.builder = DeploymentRequestBuilder()
        self.submitter = TransactionSubmitter(connection, gas_calculator)

        self.handle: Optional[SubmissionHandle] = None
        self.tracker: Optional[StatusTracker] = None
        self.result: Optional[DeploymentResult] = None
        self._started = False

    def _fail(self, kind: FailureKind, error: Exception) -> DeploymentResult:
        logger.error(f"Deployment failed ({kind.value}): {error}")
        self.result = DeploymentFailure(
            kind, str(error), tx_hash=self.handle.tx_hash if self.handle else None
        )
        return self.result

    async def deploy(
        self,
        artifact: ContractArtifact,
        args: Sequence[Any] = (),
        constructor: SelectionKey = None
    ) -> DeploymentResult:
        """
        Deploy a contract and wait for finalization

        Args:
            artifact: Contract bytecode and metadata
            args: Constructor argument values
            constructor: Constructor index or name (None = default constructor)

        Returns:
            DeploymentSuccess with the finalized address, or DeploymentFailure
        """
        if self._started:
            raise RuntimeError("ContractDeployer is single-use; create a new one per attempt")
        self._started = True

        try:
            spec = select_constructor(artifact.metadata, constructor)
            request = self.builder.build(
                artifact, spec, args, self.limits, self.credential.address
            )
        except SelectionError as e:
            return self._fail(FailureKind.SELECTION, e)
        except ValidationError as e:
            return self._fail(FailureKind.VALIDATION, e)

        logger.info(
            f"Deploying {artifact.name or 'contract'} via {spec.name}"
            f" from {request.sender}"
        )

        try:
            self.handle = await self.submitter.submit(request, self.credential)
        except ValidationError as e:
            return self._fail(FailureKind.VALIDATION, e)
        except ChainConnectionError as e:
            return self._fail(FailureKind.CONNECTION, e)

        self.tracker = StatusTracker(self.handle)
        self.result = await self.tracker.track(self.connection.subscribe(self.handle))
        return self.result

    async def deploy_with_timeout(
        self,
        artifact: ContractArtifact,
        args: Sequence[Any] = (),
        constructor: SelectionKey = None,
        timeout: Optional[float] = None
    ) -> DeploymentResult:
        """
        deploy() bounded by a deadline

        Exhausting the deadline stops observing and returns a TIMEOUT
        failure; it does not retract a transaction already broadcast.

        Args:
            timeout: Seconds to wait in total (None = wait indefinitely)
        """
        if timeout is None:
            return await self.deploy(artifact, args, constructor)

        try:
            return await asyncio.wait_for(self.deploy(artifact, args, constructor), timeout)
        except asyncio.TimeoutError:
            if self.handle is not None:
                diagnostic = (
                    f"no terminal status after {timeout}s; stopped observing "
                    f"{self.handle.tx_hash}, which may still be finalized"
                )
            else:
                diagnostic = f"no submission acknowledgment after {timeout}s; broadcast state unknown"

            logger.warning(f"Deployment timed out: {diagnostic}")
            self.result = DeploymentFailure(
                FailureKind.TIMEOUT,
                diagnostic,
                tx_hash=self.handle.tx_hash if self.handle else None
            )
            return self.result
