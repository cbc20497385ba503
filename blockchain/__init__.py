"""
Blockchain Interaction Package
Handles node connection, deployment transaction building and submission
"""

from .connection import ChainConnection, JsonRpcConnection
from .transaction_builder import DeploymentRequestBuilder
from .transaction_submitter import TransactionSubmitter

__all__ = ['ChainConnection', 'JsonRpcConnection', 'DeploymentRequestBuilder', 'TransactionSubmitter']
