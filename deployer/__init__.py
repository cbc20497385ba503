"""
Contract Deployer Core Package
Deployment types, errors, constructor selection, artifacts and credentials

The orchestrator lives in deployer.deployment_engine.
"""

from .artifacts import load_artifact
from .constructor_selector import list_constructors, select_constructor
from .exceptions import (
    ArtifactError,
    ChainConnectionError,
    ConfigError,
    DeploymentError,
    RpcError,
    SelectionError,
    ValidationError,
)
from .types import (
    ContractArtifact,
    ConstructorSpec,
    DeploymentFailure,
    DeploymentRequest,
    DeploymentResult,
    DeploymentSuccess,
    FailureKind,
    ResourceLimits,
    SubmissionHandle,
)
from .wallet_manager import SigningCredential, load_credential

__all__ = [
    'load_artifact',
    'list_constructors',
    'select_constructor',
    'ArtifactError',
    'ChainConnectionError',
    'ConfigError',
    'DeploymentError',
    'RpcError',
    'SelectionError',
    'ValidationError',
    'ContractArtifact',
    'ConstructorSpec',
    'DeploymentFailure',
    'DeploymentRequest',
    'DeploymentResult',
    'DeploymentSuccess',
    'FailureKind',
    'ResourceLimits',
    'SubmissionHandle',
    'SigningCredential',
    'load_credential',
]
