"""
Deployment Exceptions
Error taxonomy for the contract deployer
"""

from typing import Optional


class DeploymentError(Exception):
    """Base exception for deployment errors"""

    pass


class SelectionError(DeploymentError, LookupError):
    """Constructor metadata does not resolve to exactly one entry point"""

    pass


class ValidationError(DeploymentError, ValueError):
    """
    Malformed request inputs, raised before any network interaction

    Attributes:
        cause: 'arity', 'type', 'resource_limits' or 'sender'
    """

    def __init__(self, message: str, cause: Optional[str] = None):
        super().__init__(message)
        self.cause = cause


class ChainConnectionError(DeploymentError, ConnectionError):
    """Transport unreachable, node rejected the transaction, or subscription failed"""

    pass


class RpcError(ChainConnectionError):
    """The node answered a JSON-RPC request with an error object"""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class ArtifactError(DeploymentError, ValueError):
    """Contract bundle is missing bytecode or metadata"""

    pass


class ConfigError(DeploymentError, ValueError):
    """Invalid or missing deployer configuration"""

    pass
