"""
Status Tracker
State machine over a submitted deployment's event stream
"""

from enum import Enum
from typing import AsyncIterator, List, Optional

from loguru import logger

from deployer.exceptions import ChainConnectionError
from deployer.types import (
    POOL_REMOVAL_STATUSES,
    ConnectionFailed,
    ContractInstantiated,
    DeploymentEvent,
    DeploymentFailure,
    DeploymentResult,
    DeploymentSuccess,
    ExtrinsicFailed,
    FailureKind,
    StatusChanged,
    SubmissionHandle,
    TxStatus,
)


class TrackerState(Enum):
    PENDING = "pending"
    BROADCAST = "broadcast"
    IN_BLOCK = "in_block"
    FINALIZED = "finalized"
    REJECTED = "rejected"
    ERRORED = "errored"


TERMINAL_STATES = frozenset({TrackerState.FINALIZED, TrackerState.REJECTED, TrackerState.ERRORED})


class StatusTracker:
    """
    Drives one SubmissionHandle from PENDING to a terminal DeploymentResult

    PENDING -> BROADCAST -> IN_BLOCK -> FINALIZED is the success path.
    IN_BLOCK only records a provisional address: the block may still be
    retracted. Success is emitted on FINALIZED. REJECTED is reachable from
    any non-terminal state on a correlated failure; ERRORED when the stream
    itself fails. Once terminal, later events are ignored.
    """

    def __init__(self, handle: SubmissionHandle):
        """
        Initialize Status Tracker

        Args:
            handle: Submission to correlate events against
        """
        self.handle = handle
        self.state = TrackerState.PENDING
        self.history: List[TrackerState] = [TrackerState.PENDING]

        self.contract_address: Optional[str] = None
        self.block_hash: Optional[str] = None
        self.result: Optional[DeploymentResult] = None

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def _transition(self, state: TrackerState):
        if state != self.state:
            logger.debug(f"{self.handle.tx_hash[:10]}: {self.state.value} -> {state.value}")
            self.state = state
            self.history.append(state)

    def _correlated(self, event) -> bool:
        """Event belongs to our transaction (fields left None match anything)"""
        if event.deployer is not None and event.deployer.lower() != self.handle.sender.lower():
            return False
        if event.nonce is not None and event.nonce != self.handle.nonce:
            return False
        return True

    def _finish(self, state: TrackerState, result: DeploymentResult) -> DeploymentResult:
        self._transition(state)
        self.result = result
        return result

    def _reject(self, cause: str) -> DeploymentResult:
        logger.warning(f"❌ Deployment {self.handle.tx_hash} rejected: {cause}")
        return self._finish(
            TrackerState.REJECTED,
            DeploymentFailure(FailureKind.REJECTED, cause, tx_hash=self.handle.tx_hash)
        )

    def _error(self, cause: str) -> DeploymentResult:
        logger.error(f"Lost track of deployment {self.handle.tx_hash}: {cause}")
        return self._finish(
            TrackerState.ERRORED,
            DeploymentFailure(FailureKind.CONNECTION, cause, tx_hash=self.handle.tx_hash)
        )

    def _record_instantiation(self, event: ContractInstantiated):
        if not self._correlated(event):
            logger.debug(f"Ignoring instantiation of {event.contract_address} by {event.deployer}")
            return
        if self.contract_address is None:
            self.contract_address = event.contract_address
            logger.info(f"Contract instantiated at {event.contract_address} (awaiting finality)")

    def feed(self, event: DeploymentEvent) -> Optional[DeploymentResult]:
        """
        Apply one event

        Args:
            event: Next event from the subscription

        Returns:
            The DeploymentResult once terminal (the same one for every later
            event), otherwise None
        """
        if self.result is not None:
            logger.debug(f"Ignoring {type(event).__name__} after terminal state {self.state.value}")
            return self.result

        if isinstance(event, StatusChanged):
            return self._on_status(event)

        if isinstance(event, ContractInstantiated):
            self._record_instantiation(event)
            return None

        if isinstance(event, ExtrinsicFailed):
            if self._correlated(event):
                return self._reject(event.cause)
            return None

        if isinstance(event, ConnectionFailed):
            return self._error(event.cause)

        return self._error(f"unexpected event from subscription: {event!r}")

    def _on_status(self, event: StatusChanged) -> Optional[DeploymentResult]:
        status = event.status

        if status == TxStatus.PENDING:
            return None

        if status == TxStatus.BROADCAST:
            if self.state == TrackerState.PENDING:
                self._transition(TrackerState.BROADCAST)
            return None

        if status == TxStatus.IN_BLOCK:
            # A failure anywhere in the block wins over an instantiation
            for block_event in event.events:
                if isinstance(block_event, ExtrinsicFailed) and self._correlated(block_event):
                    return self._reject(block_event.cause)

            self._transition(TrackerState.IN_BLOCK)
            self.block_hash = event.block_hash
            for block_event in event.events:
                if isinstance(block_event, ContractInstantiated):
                    self._record_instantiation(block_event)
            return None

        if status == TxStatus.RETRACTED:
            self.contract_address = None
            self.block_hash = None
            self._transition(TrackerState.BROADCAST)
            return None

        if status == TxStatus.FINALIZED:
            block_hash = event.block_hash or self.block_hash
            if self.contract_address is None:
                logger.warning(f"❌ {self.handle.tx_hash} finalized but no contract was instantiated")
                return self._finish(
                    TrackerState.FINALIZED,
                    DeploymentFailure(
                        FailureKind.MISSING_INSTANTIATION_EVENT,
                        f"block {block_hash} finalized without a contract instantiation event",
                        tx_hash=self.handle.tx_hash
                    )
                )
            logger.success(f"✅ Contract deployed at {self.contract_address} (finalized in {block_hash})")
            return self._finish(
                TrackerState.FINALIZED,
                DeploymentSuccess(self.contract_address, block_hash=block_hash, tx_hash=self.handle.tx_hash)
            )

        if status in POOL_REMOVAL_STATUSES:
            return self._reject(f"transaction {status.value}")

        if status == TxStatus.FINALITY_TIMEOUT:
            return self._error("finality timeout reported by node")

        return None

    async def track(self, events: AsyncIterator[DeploymentEvent]) -> DeploymentResult:
        """
        Consume events until a terminal state

        The stream is closed on return (or on cancellation, which only stops
        observing: an already broadcast transaction may still land).

        Args:
            events: Subscription from ChainConnection.subscribe()

        Returns:
            DeploymentResult
        """
        try:
            async for event in events:
                result = self.feed(event)
                if result is not None:
                    return result
        except ChainConnectionError as e:
            return self._error(str(e))
        finally:
            aclose = getattr(events, 'aclose', None)
            if aclose is not None:
                await aclose()

        return self._error("event stream ended before a terminal status")
