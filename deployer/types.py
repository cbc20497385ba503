"""
Deployment Types
Immutable records passed between the deployment stages
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ContractArtifact:
    """Compiled contract bundle: bytecode plus constructor/event metadata"""

    bytecode: bytes
    metadata: Any = field(compare=False)
    name: Optional[str] = None


@dataclass(frozen=True)
class ConstructorParam:
    name: str
    type: str  # ABI type string, e.g. "uint128", "bytes32"


@dataclass(frozen=True)
class ConstructorSpec:
    """Constructor entry point resolved from contract metadata"""

    name: str
    params: Tuple[ConstructorParam, ...] = ()
    selector: bytes = b""
    payable: Optional[bool] = None  # None when the metadata does not say
    is_default: bool = False

    @property
    def param_types(self) -> Tuple[str, ...]:
        return tuple(p.type for p in self.params)


@dataclass(frozen=True)
class ResourceLimits:
    """
    Bounds for a deployment transaction

    storage_deposit_limit of None means unbounded / node-estimated.
    """

    compute_limit: int
    storage_deposit_limit: Optional[int] = None
    endowment: int = 0


DEFAULT_RESOURCE_LIMITS = ResourceLimits(compute_limit=3_000_000)


@dataclass(frozen=True)
class DeploymentRequest:
    """Unsigned deployment transaction, built once per attempt"""

    artifact: ContractArtifact
    constructor: ConstructorSpec
    encoded_args: bytes
    limits: ResourceLimits
    sender: str  # checksummed public identity of the signing credential

    @property
    def deploy_data(self) -> bytes:
        """Creation payload: bytecode, constructor selector, encoded arguments"""
        return self.artifact.bytecode + self.constructor.selector + self.encoded_args


@dataclass(frozen=True)
class TransactionParams:
    """Chain context needed to sign a transaction"""

    nonce: int
    chain_id: int
    base_fee: int
    priority_fee: int


@dataclass(frozen=True)
class SubmissionHandle:
    """Identity of a transaction accepted into the node's pending pool"""

    tx_hash: str
    sender: str
    nonce: int


class TxStatus(Enum):
    """Inclusion phases reported by the chain for one transaction"""

    PENDING = "pending"
    BROADCAST = "broadcast"
    IN_BLOCK = "in_block"
    RETRACTED = "retracted"
    FINALIZED = "finalized"
    USURPED = "usurped"
    DROPPED = "dropped"
    INVALID = "invalid"
    FINALITY_TIMEOUT = "finality_timeout"


# Phases meaning the transaction left the pool without being executed
POOL_REMOVAL_STATUSES = frozenset({TxStatus.USURPED, TxStatus.DROPPED, TxStatus.INVALID})


class DeploymentEvent:
    """Base class for events delivered by a ChainConnection subscription"""

    __slots__ = ()


@dataclass(frozen=True)
class ContractInstantiated(DeploymentEvent):
    contract_address: str
    deployer: Optional[str] = None
    nonce: Optional[int] = None


@dataclass(frozen=True)
class ExtrinsicFailed(DeploymentEvent):
    cause: str
    deployer: Optional[str] = None
    nonce: Optional[int] = None


@dataclass(frozen=True)
class StatusChanged(DeploymentEvent):
    """
    Status transition; on IN_BLOCK `events` holds the block's event log
    for the transaction
    """

    status: TxStatus
    block_hash: Optional[str] = None
    events: Tuple[DeploymentEvent, ...] = ()


@dataclass(frozen=True)
class ConnectionFailed(DeploymentEvent):
    """The subscription ended abnormally"""

    cause: str


class FailureKind(Enum):
    SELECTION = "selection"
    VALIDATION = "validation"
    CONNECTION = "connection"
    REJECTED = "rejected"
    MISSING_INSTANTIATION_EVENT = "missing_instantiation_event"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class DeploymentResult(ABC):
    """Terminal outcome of one deployment attempt"""

    @property
    def ok(self) -> bool:
        return False

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view of the outcome"""


@dataclass(frozen=True)
class DeploymentSuccess(DeploymentResult):
    contract_address: str
    block_hash: Optional[str] = None
    tx_hash: Optional[str] = None

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': 'success',
            'contract_address': self.contract_address,
            'block_hash': self.block_hash,
            'tx_hash': self.tx_hash,
        }


@dataclass(frozen=True)
class DeploymentFailure(DeploymentResult):
    kind: FailureKind
    diagnostic: str = ""
    tx_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': 'failure',
            'kind': self.kind.value,
            'diagnostic': self.diagnostic,
            'tx_hash': self.tx_hash,
        }
