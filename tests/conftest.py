"""
Shared fixtures for deployer tests
"""

import asyncio
from typing import List, Optional

import pytest

from blockchain.connection import ChainConnection
from deployer.types import (
    ContractArtifact,
    DeploymentEvent,
    SubmissionHandle,
    TransactionParams,
)
from deployer.wallet_manager import SigningCredential


# Publicly known development key (first hardhat/anvil account)
TEST_PRIVATE_KEY = '0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80'
TEST_ADDRESS = '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'

ADMIN = '0x70997970C51812dc3A010C7d01b50e0d17dc79C8'
CONTRACT_ADDRESS = '0x5FbDB2315678afecb367f032d93F642f64180aa3'
BLOCK_HASH = '0x' + 'ab' * 32
TX_HASH = '0x' + '12' * 32

SOLIDITY_ABI = [
    {
        'type': 'constructor',
        'stateMutability': 'payable',
        'inputs': [
            {'name': 'admin', 'type': 'address', 'internalType': 'address'},
            {'name': 'threshold', 'type': 'uint128', 'internalType': 'uint128'},
        ],
    },
    {
        'type': 'event',
        'name': 'PaymentRequested',
        'anonymous': False,
        'inputs': [{'name': 'amount', 'type': 'uint256', 'indexed': False}],
    },
    {
        'type': 'function',
        'name': 'admin',
        'inputs': [],
        'outputs': [{'name': '', 'type': 'address'}],
        'stateMutability': 'view',
    },
]

INK_BUNDLE = {
    'source': {'hash': '0x' + '00' * 32, 'wasm': '0x0061736d01000000'},
    'contract': {'name': 'secure_payment_system', 'version': '0.1.0'},
    'spec': {
        'constructors': [
            {
                'label': 'new',
                'selector': '0x9bae9d5e',
                'payable': False,
                'default': False,
                'args': [
                    {'label': 'admin', 'type': {'displayName': ['AccountId'], 'type': 0}},
                ],
            },
            {
                'label': 'with_threshold',
                'selector': '0x1a2b3c4d',
                'payable': True,
                'default': False,
                'args': [
                    {'label': 'admin', 'type': {'displayName': ['AccountId'], 'type': 0}},
                    {'label': 'threshold', 'type': {'displayName': ['Balance'], 'type': 6}},
                ],
            },
        ],
    },
}


class ScriptedConnection(ChainConnection):
    """
    In-memory ChainConnection replaying a fixed list of events

    With hang=True the stream stays open after the script runs out, like a
    node that never finalizes.
    """

    def __init__(
        self,
        events: Optional[List[DeploymentEvent]] = None,
        params: Optional[TransactionParams] = None,
        submit_error: Optional[Exception] = None,
        hang: bool = False
    ):
        self.events = list(events or [])
        self.params = params or TransactionParams(
            nonce=7, chain_id=1337, base_fee=10 * 10**9, priority_fee=10**9
        )
        self.submit_error = submit_error
        self.hang = hang

        self.param_calls: List[str] = []
        self.submit_calls: List[tuple] = []
        self.subscribe_calls: List[SubmissionHandle] = []
        self.closed_streams = 0

    async def get_transaction_params(self, sender: str) -> TransactionParams:
        self.param_calls.append(sender)
        return self.params

    async def submit(self, raw_transaction: bytes, sender: str, nonce: int) -> SubmissionHandle:
        self.submit_calls.append((raw_transaction, sender, nonce))
        if self.submit_error is not None:
            raise self.submit_error
        return SubmissionHandle(tx_hash=TX_HASH, sender=sender, nonce=nonce)

    async def subscribe(self, handle: SubmissionHandle):
        self.subscribe_calls.append(handle)
        try:
            for event in self.events:
                if isinstance(event, Exception):
                    raise event
                yield event
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed_streams += 1


@pytest.fixture
def credential():
    """Signing credential for the development account"""
    return SigningCredential.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def solidity_artifact():
    """Hardhat-style artifact with a payable two-argument constructor"""
    return ContractArtifact(
        bytecode=bytes.fromhex('6080604052'),
        metadata=SOLIDITY_ABI,
        name='PaymentContract'
    )


@pytest.fixture
def ink_artifact():
    """ink!-style bundle with two selector-addressed constructors"""
    return ContractArtifact(
        bytecode=bytes.fromhex('0061736d01000000'),
        metadata=INK_BUNDLE,
        name='secure_payment_system'
    )


@pytest.fixture
def handle():
    """Submission handle for the development account"""
    return SubmissionHandle(tx_hash=TX_HASH, sender=TEST_ADDRESS, nonce=7)
