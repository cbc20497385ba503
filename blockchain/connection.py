"""
Chain Connection
Single logical session to a node: submission and per-transaction status streams
"""

import asyncio
import itertools
import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import websockets
from loguru import logger
from web3 import Web3

from deployer.exceptions import ChainConnectionError, RpcError
from deployer.types import (
    ConnectionFailed,
    ContractInstantiated,
    DeploymentEvent,
    ExtrinsicFailed,
    StatusChanged,
    SubmissionHandle,
    TransactionParams,
    TxStatus,
)


class ChainConnection(ABC):
    """
    Interface the deployer needs from a node

    submit() fails fast with ChainConnectionError; subscribe() yields
    DeploymentEvents for one handle until the caller closes the iterator.
    Each call to subscribe() opens a new subscription.
    """

    @abstractmethod
    async def get_transaction_params(self, sender: str) -> TransactionParams:
        """Nonce, chain id and fee data needed to sign for `sender`"""

    @abstractmethod
    async def submit(self, raw_transaction: bytes, sender: str, nonce: int) -> SubmissionHandle:
        """Broadcast a signed transaction once"""

    @abstractmethod
    def subscribe(self, handle: SubmissionHandle) -> AsyncIterator[DeploymentEvent]:
        """Stream status events for a submitted transaction"""


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return Web3.to_int(hexstr=value)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ValueError(f"Expected a quantity, got {value!r}")


class _StreamClosed:
    """Queue sentinel pushed to subscriptions when the transport goes away"""

    def __init__(self, reason: str):
        self.reason = reason


class _InclusionWatcher:
    """
    Per-subscription view of one transaction's progress

    Called once at subscription time and then on every new head; returns the
    events that became true since the previous call.
    """

    def __init__(self, connection: "JsonRpcConnection", handle: SubmissionHandle):
        self.connection = connection
        self.handle = handle
        self.seen = False
        self.transaction: Optional[Dict] = None
        self.receipt: Optional[Dict] = None

    async def poll(self) -> List[DeploymentEvent]:
        events: List[DeploymentEvent] = []
        rpc = self.connection.request
        tx_hash = self.handle.tx_hash

        if self.receipt is None:
            receipt = await rpc('eth_getTransactionReceipt', [tx_hash])
            if receipt is None:
                transaction = await rpc('eth_getTransactionByHash', [tx_hash])
                if transaction is not None:
                    self.transaction = transaction
                    if not self.seen:
                        self.seen = True
                        events.append(StatusChanged(TxStatus.BROADCAST))
                    return events

                latest_nonce = _to_int(
                    await rpc('eth_getTransactionCount', [self.handle.sender, 'latest'])
                )
                if latest_nonce > self.handle.nonce:
                    # Another transaction with our nonce was mined instead
                    events.append(StatusChanged(TxStatus.USURPED))
                elif self.seen:
                    events.append(StatusChanged(TxStatus.DROPPED))
                return events

            if not self.seen:
                self.seen = True
                events.append(StatusChanged(TxStatus.BROADCAST))
            self.receipt = receipt
            events.append(await self._in_block(receipt))

        block_number = _to_int(self.receipt['blockNumber'])
        block_hash = self.receipt['blockHash']

        canonical = await rpc('eth_getBlockByNumber', [hex(block_number), False])
        if canonical is None or canonical.get('hash') != block_hash:
            logger.warning(f"Block {block_hash} left the canonical chain, waiting for re-inclusion")
            self.receipt = None
            events.append(StatusChanged(TxStatus.RETRACTED, block_hash=block_hash))
            return events

        finalized = await rpc('eth_getBlockByNumber', ['finalized', False])
        if finalized is not None and _to_int(finalized['number']) >= block_number:
            events.append(StatusChanged(TxStatus.FINALIZED, block_hash=block_hash))
        return events

    async def _in_block(self, receipt: Dict) -> StatusChanged:
        """IN_BLOCK status carrying the transaction's event log from the receipt"""
        deployer = receipt.get('from', self.handle.sender)

        if _to_int(receipt.get('status', '0x1')) == 1:
            address = receipt.get('contractAddress')
            block_events = (
                (ContractInstantiated(address, deployer=deployer, nonce=self.handle.nonce),)
                if address else ()
            )
        else:
            if self.transaction is None:
                self.transaction = await self.connection.request(
                    'eth_getTransactionByHash', [self.handle.tx_hash]
                )
            gas_limit = _to_int(self.transaction['gas']) if self.transaction else None
            gas_used = _to_int(receipt['gasUsed'])
            cause = 'OutOfGas' if gas_limit is not None and gas_used >= gas_limit else 'Reverted'
            block_events = (ExtrinsicFailed(cause, deployer=deployer, nonce=self.handle.nonce),)

        return StatusChanged(TxStatus.IN_BLOCK, block_hash=receipt['blockHash'], events=block_events)


class JsonRpcConnection(ChainConnection):
    """
    JSON-RPC over one WebSocket

    A reader task routes responses to waiting requests by id and
    eth_subscription notifications to per-subscription queues, so any number
    of subscriptions share the socket without sharing mutable state.
    """

    def __init__(
        self,
        ws_url: str,
        request_timeout: float = 30.0,
        connect: Optional[Callable] = None
    ):
        """
        Initialize JSON-RPC connection

        Args:
            ws_url: Node WebSocket endpoint (ws:// or wss://)
            request_timeout: Seconds to wait for each RPC response
            connect: WebSocket factory (defaults to websockets.connect)
        """
        self.ws_url = ws_url
        self.request_timeout = request_timeout
        self._connect = connect or websockets.connect

        self.ws = None
        self.connected = False
        self._ids = itertools.count(1)
        self._pending: Dict[int, asyncio.Future] = {}
        self._subscriptions: Dict[str, asyncio.Queue] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self._background: set = set()

    async def connect(self):
        """Open the WebSocket and start routing messages"""
        try:
            self.ws = await self._connect(self.ws_url)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise ChainConnectionError(f"Cannot connect to {self.ws_url}: {e}") from e

        self.connected = True
        self._reader_task = asyncio.create_task(self._read_loop())
        logger.success(f"Connected to node: {self.ws_url[:50]}")

    async def close(self):
        """Close the WebSocket; open subscriptions end with ConnectionFailed"""
        if self._reader_task:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        for task in list(self._background):
            task.cancel()

        if self.ws is not None:
            await self.ws.close()
        self._fail_all("connection closed by client")
        logger.info("Node connection closed")

    async def __aenter__(self) -> "JsonRpcConnection":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _read_loop(self):
        reason = "node closed the connection"
        try:
            async for message in self.ws:
                try:
                    self._dispatch(json.loads(message))
                except (AttributeError, TypeError, ValueError) as e:
                    reason = f"malformed payload from node: {str(message)[:80]} ({e})"
                    break
        except websockets.exceptions.ConnectionClosed as e:
            reason = f"connection dropped: {e}"
        except asyncio.CancelledError:
            reason = "connection closed by client"
            raise
        finally:
            # Any exit must wake pending requests and subscriptions
            self._fail_all(reason)
        logger.error(f"Node connection lost: {reason}")

    def _dispatch(self, data: Any):
        if not isinstance(data, dict):
            logger.debug(f"Ignoring non-object message: {data!r}")
            return

        if data.get('method') == 'eth_subscription':
            params = data.get('params')
            if not isinstance(params, dict):
                raise ValueError(f"subscription notification without params object: {params!r}")
            queue = self._subscriptions.get(params.get('subscription'))
            if queue is not None:
                queue.put_nowait(params.get('result'))
            return

        request_id = data.get('id')
        if request_id is None:
            logger.debug(f"Ignoring message without id: {str(data)[:80]}")
            return
        if not isinstance(request_id, (int, str)):
            raise ValueError(f"response id must be a number or string, got {request_id!r}")

        future = self._pending.get(request_id)
        if future is not None and not future.done():
            future.set_result(data)

    def _fail_all(self, reason: str):
        self.connected = False
        for future in self._pending.values():
            if not future.done():
                future.set_exception(ChainConnectionError(reason))
        for queue in self._subscriptions.values():
            queue.put_nowait(_StreamClosed(reason))

    async def request(self, method: str, params: list) -> Any:
        """
        Send one JSON-RPC request and wait for its result

        Raises:
            RpcError: The node returned an error object
            ChainConnectionError: Not connected, connection lost, or timed out
        """
        if not self.connected:
            raise ChainConnectionError(f"Not connected to {self.ws_url}")

        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            await self.ws.send(json.dumps({
                "jsonrpc": "2.0",
                "id": request_id,
                "method": method,
                "params": params
            }))
            response = await asyncio.wait_for(future, timeout=self.request_timeout)
        except asyncio.TimeoutError:
            raise ChainConnectionError(f"{method} timed out after {self.request_timeout}s") from None
        except websockets.exceptions.ConnectionClosed as e:
            raise ChainConnectionError(f"Connection lost during {method}: {e}") from e
        finally:
            self._pending.pop(request_id, None)

        if 'error' in response:
            error = response['error'] or {}
            raise RpcError(
                f"{method} failed: {error.get('message', error)}",
                code=error.get('code')
            )
        return response.get('result')

    async def get_transaction_params(self, sender: str) -> TransactionParams:
        nonce, chain_id, latest = await asyncio.gather(
            self.request('eth_getTransactionCount', [sender, 'pending']),
            self.request('eth_chainId', []),
            self.request('eth_getBlockByNumber', ['latest', False]),
        )
        try:
            base_fee = _to_int(latest.get('baseFeePerGas', 0)) if latest else 0

            try:
                priority_fee = _to_int(await self.request('eth_maxPriorityFeePerGas', []))
            except RpcError:
                # Pre-London nodes: derive the tip from the legacy gas price
                gas_price = _to_int(await self.request('eth_gasPrice', []))
                priority_fee = max(gas_price - base_fee, 0)

            return TransactionParams(
                nonce=_to_int(nonce),
                chain_id=_to_int(chain_id),
                base_fee=base_fee,
                priority_fee=priority_fee,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ChainConnectionError(f"malformed payload from node: {e!r}") from e

    async def submit(self, raw_transaction: bytes, sender: str, nonce: int) -> SubmissionHandle:
        tx_hash = await self.request('eth_sendRawTransaction', [Web3.to_hex(raw_transaction)])
        if not isinstance(tx_hash, str):
            raise ChainConnectionError(f"Node returned no transaction hash: {tx_hash!r}")

        logger.info(f"Transaction sent: {tx_hash}")
        return SubmissionHandle(tx_hash=tx_hash, sender=sender, nonce=nonce)

    async def subscribe(self, handle: SubmissionHandle) -> AsyncIterator[DeploymentEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        try:
            subscription_id = await self.request('eth_subscribe', ['newHeads'])
        except ChainConnectionError as e:
            yield ConnectionFailed(str(e))
            return
        if not isinstance(subscription_id, str):
            yield ConnectionFailed(f"malformed subscription id from node: {subscription_id!r}")
            return

        self._subscriptions[subscription_id] = queue
        watcher = _InclusionWatcher(self, handle)
        logger.debug(f"Watching {handle.tx_hash} on subscription {subscription_id}")

        try:
            for event in await watcher.poll():
                yield event

            while True:
                head = await queue.get()
                if isinstance(head, _StreamClosed):
                    yield ConnectionFailed(head.reason)
                    return
                if not isinstance(head, dict) or 'number' not in head:
                    yield ConnectionFailed(f"malformed head notification: {head!r}")
                    return

                for event in await watcher.poll():
                    yield event

        except ChainConnectionError as e:
            yield ConnectionFailed(str(e))
        except (KeyError, TypeError, ValueError) as e:
            yield ConnectionFailed(f"malformed payload from node: {e!r}")
        finally:
            self._subscriptions.pop(subscription_id, None)
            if self.connected:
                # Closing only stops observing; never wait on the node's reply
                self._unsubscribe_later(subscription_id)

    def _unsubscribe_later(self, subscription_id: str):
        task = asyncio.get_running_loop().create_task(self._unsubscribe(subscription_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _unsubscribe(self, subscription_id: str):
        try:
            await self.request('eth_unsubscribe', [subscription_id])
        except ChainConnectionError as e:
            logger.debug(f"Unsubscribe {subscription_id} failed: {e}")
