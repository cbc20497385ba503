"""
Fuzz Testing for the Contract Deployer
Tests edge cases and unexpected inputs
"""

import pytest
from hypothesis import given, settings, strategies as st

from blockchain.transaction_builder import DeploymentRequestBuilder
from deployer.constructor_selector import select_constructor
from deployer.exceptions import SelectionError, ValidationError
from deployer.types import (
    ConnectionFailed,
    ContractArtifact,
    ContractInstantiated,
    ExtrinsicFailed,
    ResourceLimits,
    StatusChanged,
    SubmissionHandle,
    TransactionParams,
    TxStatus,
)
from monitoring.status_tracker import StatusTracker, TERMINAL_STATES
from utils.gas_calculator import GasCalculator

from conftest import INK_BUNDLE, SOLIDITY_ABI, TEST_ADDRESS, TX_HASH


ARTIFACT = ContractArtifact(bytecode=b'\x60\x80', metadata=SOLIDITY_ABI)
SPEC = select_constructor(SOLIDITY_ABI)
HANDLE = SubmissionHandle(tx_hash=TX_HASH, sender=TEST_ADDRESS, nonce=7)

addresses = st.sampled_from([
    '0x5FbDB2315678afecb367f032d93F642f64180aa3',
    '0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512',
])
deployers = st.sampled_from([None, TEST_ADDRESS, TEST_ADDRESS.lower(), '0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC'])
nonces = st.sampled_from([None, 7, 8])

block_events = st.one_of(
    st.builds(ContractInstantiated, addresses, deployers, nonces),
    st.builds(ExtrinsicFailed, st.sampled_from(['Reverted', 'OutOfGas', 'InsufficientBalance']), deployers, nonces),
)
events = st.one_of(
    block_events,
    st.builds(
        StatusChanged,
        st.sampled_from(list(TxStatus)),
        st.sampled_from([None, '0x' + 'ab' * 32]),
        st.lists(block_events, max_size=3).map(tuple),
    ),
    st.builds(ConnectionFailed, st.text(max_size=20)),
)


class TestBuilderFuzzing:
    """Fuzz request validation"""

    @given(args=st.lists(st.one_of(st.integers(), st.text(max_size=50), st.binary(max_size=40), st.none()), max_size=4))
    @settings(max_examples=200)
    def test_build_validates_or_raises_validation_error(self, args):
        """Arbitrary arguments never escape as anything but ValidationError"""
        try:
            request = DeploymentRequestBuilder().build(
                ARTIFACT, SPEC, args, ResourceLimits(compute_limit=1_000_000), TEST_ADDRESS
            )
        except ValidationError as e:
            assert e.cause in ('arity', 'type')
            return

        assert len(args) == 2
        assert request.deploy_data.startswith(ARTIFACT.bytecode)
        assert len(request.encoded_args) == 64

    @given(
        compute_limit=st.integers(min_value=-10, max_value=10**8),
        deposit=st.one_of(st.none(), st.integers(min_value=-10, max_value=10**20)),
        endowment=st.integers(min_value=-10, max_value=10**20),
    )
    def test_resource_limits(self, compute_limit, deposit, endowment):
        limits = ResourceLimits(compute_limit, deposit, endowment)
        valid = compute_limit > 0 and endowment >= 0 and (deposit is None or deposit >= 0)

        try:
            DeploymentRequestBuilder().build(
                ARTIFACT, SPEC, [TEST_ADDRESS, 1], limits, TEST_ADDRESS
            )
        except ValidationError as e:
            assert not valid
            assert e.cause == 'resource_limits'
        else:
            assert valid


class TestSelectorFuzzing:
    """Fuzz constructor keys"""

    @given(key=st.one_of(st.none(), st.integers(), st.text(max_size=12), st.booleans()))
    def test_key_resolves_or_raises_selection_error(self, key):
        try:
            spec = select_constructor(INK_BUNDLE, key)
        except SelectionError:
            return
        assert spec.name in ('new', 'with_threshold')


class TestGasFuzzing:
    """Fuzz fee computation"""

    @given(
        base_fee=st.integers(min_value=0, max_value=10**12),
        priority_fee=st.integers(min_value=0, max_value=10**11),
        compute_limit=st.integers(min_value=21_000, max_value=30_000_000),
        deposit=st.one_of(st.none(), st.integers(min_value=0, max_value=10**22)),
    )
    def test_fee_never_exceeds_deposit(self, base_fee, priority_fee, compute_limit, deposit):
        params = TransactionParams(nonce=0, chain_id=1, base_fee=base_fee, priority_fee=priority_fee)
        limits = ResourceLimits(compute_limit, deposit)

        try:
            fees = GasCalculator().fee_params(params, limits)
        except ValidationError:
            assert deposit is not None
            assert deposit // compute_limit < base_fee + priority_fee
            return

        assert fees['maxFeePerGas'] >= base_fee + priority_fee
        assert fees['maxPriorityFeePerGas'] == priority_fee
        if deposit is not None:
            assert fees['maxFeePerGas'] * compute_limit <= deposit


class TestTrackerFuzzing:
    """Fuzz the status state machine"""

    @given(sequence=st.lists(events, max_size=12))
    @settings(max_examples=300)
    def test_terminal_result_is_stable(self, sequence):
        """Once terminal, every later event returns the same result"""
        tracker = StatusTracker(HANDLE)
        first = None

        for event in sequence:
            result = tracker.feed(event)
            if first is None and result is not None:
                first = result
                terminal_state = tracker.state
            elif first is not None:
                assert result is first
                assert tracker.state == terminal_state

        if first is not None:
            assert tracker.state in TERMINAL_STATES
        else:
            assert tracker.state not in TERMINAL_STATES

    @given(sequence=st.lists(events, max_size=12))
    def test_success_only_after_finalized(self, sequence):
        tracker = StatusTracker(HANDLE)

        for event in sequence:
            result = tracker.feed(event)
            if result is not None:
                break

        if tracker.result is not None and tracker.result.ok:
            assert tracker.history[-1].value == 'finalized'
            assert tracker.result.contract_address is not None


# Run tests
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
