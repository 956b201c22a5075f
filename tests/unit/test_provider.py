"""
tests/unit/test_provider.py - End-to-end provider behaviour over a fake transport.
"""

import json

import pytest

from core.constants import ConnectionState, ErrorCode
from core.exceptions import (
    AuthorizationError,
    ConnectionClosedError,
    RpcError,
    TransportError,
    ValidationError,
)
from provider.ethereum import EthereumProvider, SubscribingEthereumProvider


class TestScenarios:
    """Walkthroughs of the main provider flows."""

    @pytest.mark.asyncio
    async def test_send_net_version(self, transport, make_provider):
        """send('net_version') resolves with the node's answer."""
        provider = make_provider(transport)
        future = provider.send("net_version", [])

        assert transport.last_request == {
            "jsonrpc": "2.0", "id": 0, "method": "net_version", "params": [],
        }
        transport.respond(0, "1")

        assert await future == "1"

    @pytest.mark.asyncio
    async def test_subscribe_and_receive_push(self, transport, make_provider):
        """subscribe resolves the id; pushes reach its listeners."""
        provider = make_provider(transport)
        future = provider.subscribe("eth_subscribe", "newHeads", [])
        transport.respond(0, "sub1")
        subscription_id = await future

        received = []
        provider.on(subscription_id, received.append)
        transport.push("sub1", {"number": "0x1"})

        assert subscription_id == "sub1"
        assert received == [{"number": "0x1"}]

    @pytest.mark.asyncio
    async def test_close_fails_subscription_and_reconnects_once(
        self, transport, make_provider, settle
    ):
        """Close: listener error, close event, exactly one reconnect."""
        provider = make_provider(transport)
        transport.ack_connect()
        future = provider.subscribe("eth_subscribe", "newHeads")
        transport.respond(0, "sub1")
        await future

        received = []
        closes = []
        provider.on("sub1", received.append)
        provider.on("close", lambda code, reason: closes.append((code, reason)))

        transport.close(1006, "network lost")
        await settle()

        assert len(received) == 1
        assert isinstance(received[0], ConnectionClosedError)
        assert closes == [(1006, "network lost")]
        assert provider.active_subscriptions == []
        assert transport.connect_calls == 2
        assert provider.state == ConnectionState.CONNECTING

    @pytest.mark.asyncio
    async def test_enable_denied(self, transport, make_provider, make_authorizer):
        """Denial rejects with 4001; accountsChanged does not fire."""
        provider = make_provider(transport, make_authorizer(None))
        changes = []
        provider.on("accountsChanged", changes.append)

        with pytest.raises(AuthorizationError) as exc_info:
            await provider.enable()

        assert exc_info.value.code == 4001
        assert changes == []
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_gated_send_without_accounts(self, transport, make_provider):
        """Account-requiring calls reject with 4100 and never hit the wire."""
        provider = make_provider(transport)
        future = provider.send("eth_sendTransaction", [{"to": "0xabc", "value": "0x1"}])

        assert future.done()
        with pytest.raises(AuthorizationError) as exc_info:
            await future
        assert exc_info.value.code == ErrorCode.UNAUTHORIZED
        assert transport.sent == []


class TestEthereumProvider:
    """Test EthereumProvider public surface."""

    @pytest.mark.asyncio
    async def test_construction_issues_connect(self, transport, make_provider):
        """Creating a provider starts connecting."""
        provider = make_provider(transport)

        assert transport.connect_calls == 1
        assert provider.state == ConnectionState.CONNECTING
        assert not provider.is_connected()

        transport.ack_connect()
        assert provider.is_connected()

    @pytest.mark.asyncio
    async def test_connect_event(self, transport, make_provider):
        """connect fires once on the ack."""
        provider = make_provider(transport)
        connects = []
        provider.on("connect", lambda: connects.append(True))

        transport.ack_connect()
        transport.ack_connect()

        assert connects == [True]

    @pytest.mark.asyncio
    async def test_rpc_error_carried_verbatim(self, transport, make_provider):
        """Remote errors surface as RpcError."""
        provider = make_provider(transport)
        future = provider.send("eth_getBalance", ["0xabc", "latest"])
        transport.respond_error(0, -32602, "invalid argument", data={"arg": 0})

        with pytest.raises(RpcError) as exc_info:
            await future
        assert exc_info.value.code == -32602
        assert exc_info.value.data == {"arg": 0}

    @pytest.mark.asyncio
    async def test_validation_errors_raise_synchronously(self, transport, make_provider):
        """Bad input raises immediately and sends nothing."""
        provider = make_provider(transport)

        with pytest.raises(ValidationError):
            provider.send(7)
        with pytest.raises(ValidationError):
            provider.send("eth_call", "0x")
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_gated_send_after_enable(self, transport, make_provider, make_authorizer):
        """Once enabled, gated calls reach the transport."""
        provider = make_provider(transport, make_authorizer(["0xaaa"]))
        await provider.enable()

        future = provider.send("eth_sendTransaction", [{"to": "0xabc"}])
        transport.respond(0, "0xhash")

        assert await future == "0xhash"
        assert provider.accounts == ["0xaaa"]
        assert provider.enabled

    @pytest.mark.asyncio
    async def test_send_enable_served_locally(self, transport, make_provider, make_authorizer):
        """send('enable') runs the gate, not the transport."""
        provider = make_provider(transport, make_authorizer(["0xaaa"]))

        assert await provider.send("enable") is True
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_request_accounts(self, transport, make_provider, make_authorizer):
        """eth_requestAccounts resolves the authorized list."""
        provider = make_provider(transport, make_authorizer(["0xaaa", "0xbbb"]))

        assert await provider.send("eth_requestAccounts") == ["0xaaa", "0xbbb"]
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_accounts_changed_from_transport(self, transport, make_provider):
        """External account changes are broadcast."""
        provider = make_provider(transport)
        changes = []
        provider.on("accountsChanged", changes.append)

        transport.sink.on_accounts_changed(["0xccc"])

        assert changes == [["0xccc"]]
        assert provider.is_authorized("eth_sendTransaction")

    @pytest.mark.asyncio
    async def test_network_changed_from_transport(self, transport, make_provider):
        """Network changes while connected are broadcast without reconnecting."""
        provider = make_provider(transport)
        transport.ack_connect()
        changes = []
        provider.on("networkChanged", changes.append)

        transport.sink.on_network_changed("5")

        assert changes == ["5"]
        assert provider.network_id == "5"
        assert transport.connect_calls == 1

    @pytest.mark.asyncio
    async def test_network_queried_on_connect(self, transport, make_provider, settle):
        """With the query enabled, net_version runs after every connect."""
        provider = make_provider(transport, query_network_on_connect=True)
        changes = []
        provider.on("networkChanged", changes.append)

        transport.ack_connect()
        assert transport.last_request["method"] == "net_version"
        transport.respond(0, "1")
        await settle()

        assert provider.network_id == "1"
        assert changes == ["1"]

    @pytest.mark.asyncio
    async def test_close_does_not_fail_plain_requests(self, transport, make_provider, settle):
        """Only subscriptions are failed on close; requests stay pending."""
        provider = make_provider(transport)
        future = provider.send("eth_blockNumber")

        transport.close()
        await settle()

        assert not future.done()
        assert provider.pending_requests == 1

    @pytest.mark.asyncio
    async def test_string_and_batch_messages(self, transport, make_provider):
        """JSON text and batches are demultiplexed; garbage is dropped."""
        provider = make_provider(transport)
        first = provider.send("a")
        second = provider.send("b")

        transport.sink.on_transport_message("not json")
        transport.sink.on_transport_message(json.dumps([
            {"id": 1, "result": "B"},
            {"id": 0, "result": "A"},
        ]).encode())

        assert await first == "A"
        assert await second == "B"

    @pytest.mark.asyncio
    async def test_malformed_ids_dropped(self, transport, make_provider):
        """Unhashable ids and subscription ids are discarded without raising."""
        provider = make_provider(transport)
        future = provider.send("eth_blockNumber")

        transport.sink.on_transport_message({"jsonrpc": "2.0", "id": [0], "result": "x"})
        transport.sink.on_transport_message({
            "jsonrpc": "2.0",
            "method": "eth_subscription",
            "params": {"subscription": {}, "result": 1},
        })

        assert not future.done()
        assert provider.pending_requests == 1

    @pytest.mark.asyncio
    async def test_transport_error_rejects_request(self, transport, make_provider):
        """Correlated transport failures reject the request."""
        provider = make_provider(transport)
        future = provider.send("eth_blockNumber")

        transport.sink.on_transport_error(0, TransportError("HTTP 502"))
        transport.sink.on_transport_error(None, TransportError("socket reset"))

        with pytest.raises(TransportError):
            await future

    @pytest.mark.asyncio
    async def test_listener_errors_do_not_break_delivery(self, transport, make_provider):
        """A raising listener does not stop the others."""
        provider = make_provider(transport)
        future = provider.subscribe("eth_subscribe", "newHeads")
        transport.respond(0, "sub1")
        await future

        received = []

        def broken(result):
            raise RuntimeError("listener bug")

        provider.on("sub1", broken)
        provider.on("sub1", received.append)
        transport.push("sub1", 1)

        assert received == [1]


class TestSubscriptionFeatureDetection:
    """subscribe/unsubscribe exist only when the transport supports pushes."""

    @pytest.mark.asyncio
    async def test_subscribing_transport(self, transport, make_provider):
        provider = make_provider(transport)

        assert isinstance(provider, SubscribingEthereumProvider)
        assert hasattr(provider, "subscribe")
        assert hasattr(provider, "unsubscribe")

    @pytest.mark.asyncio
    async def test_request_only_transport(self, request_only_transport, make_provider):
        provider = make_provider(request_only_transport)

        assert type(provider) is EthereumProvider
        assert not hasattr(provider, "subscribe")
        assert not hasattr(provider, "unsubscribe")

    @pytest.mark.asyncio
    async def test_unsubscribe_then_late_push(self, transport, make_provider):
        """After unsubscribe, pushes for the id go nowhere."""
        provider = make_provider(transport)
        future = provider.subscribe("eth_subscribe", "newHeads")
        transport.respond(0, "sub1")
        await future
        received = []
        provider.on("sub1", received.append)

        future = provider.unsubscribe("eth_unsubscribe", "sub1")
        transport.respond(1, True)
        assert await future is True

        transport.push("sub1", "late")
        assert received == []
        assert provider.listener_count("sub1") == 0


class TestSendAsync:
    """Legacy callback API."""

    @pytest.mark.asyncio
    async def test_success(self, transport, make_provider, settle):
        provider = make_provider(transport)
        calls = []
        payload = {"jsonrpc": "2.0", "id": 99, "method": "eth_blockNumber", "params": []}

        provider.send_async(payload, lambda error, response: calls.append((error, response)))
        transport.respond(0, "0x10")
        await settle()

        assert calls == [(None, {**payload, "result": "0x10"})]
        assert "result" not in payload

    @pytest.mark.asyncio
    async def test_error(self, transport, make_provider, settle):
        provider = make_provider(transport)
        calls = []

        provider.send_async({"method": "eth_call", "params": []}, lambda e, r: calls.append((e, r)))
        transport.respond_error(0, 3, "execution reverted")
        await settle()

        error, response = calls[0]
        assert isinstance(error, RpcError)
        assert response is None

    @pytest.mark.asyncio
    async def test_invalid_payload(self, transport, make_provider):
        provider = make_provider(transport)
        with pytest.raises(ValidationError):
            provider.send_async(["eth_call"], lambda e, r: None)
