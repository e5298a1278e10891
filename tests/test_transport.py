"""Tests for frames, the loopback transport and the MQTT transport."""

import json

import pytest
from unittest.mock import MagicMock, patch

from newscast.config import MQTTConfig
from newscast.transport import (
    Datagram,
    LoopbackHub,
    MQTTTransport,
    decode_frame,
    encode_frame,
)


class TestFrames:
    """Tests for the frame envelope."""

    def test_encode_frame(self):
        frame = json.loads(encode_frame("kiosk-1", "poggish_news", {"type": "heartbeat"}))

        assert frame == {
            "protocol": "poggish_news",
            "sender": "kiosk-1",
            "message": {"type": "heartbeat"},
        }

    def test_decode_frame_bytes(self):
        raw = encode_frame("server", "poggish_news", {"type": "server_heartbeat"}).encode()

        datagram = decode_frame(raw, unicast=True)

        assert datagram.sender == "server"
        assert datagram.protocol == "poggish_news"
        assert datagram.message == {"type": "server_heartbeat"}
        assert datagram.unicast is True

    @pytest.mark.parametrize("raw", [b"\xff\xfe", "not json", "[1, 2]", '{"sender": "x"}'])
    def test_decode_frame_noise(self, raw):
        """Test that bytes that are not a frame are dropped."""
        assert decode_frame(raw) is None

    def test_decode_frame_without_protocol(self):
        datagram = decode_frame('{"sender": "x", "message": {}}')

        assert datagram.protocol is None


def collect(transport):
    received = []
    transport.set_receiver(received.append)
    return received


class TestLoopback:
    """Tests for the in-memory transport."""

    @pytest.mark.asyncio
    async def test_broadcast_reaches_everyone_else(self):
        hub = LoopbackHub()
        server, kiosk1, kiosk2 = (hub.endpoint(n) for n in ("server", "kiosk-1", "kiosk-2"))
        inboxes = {t.node_id: collect(t) for t in (server, kiosk1, kiosk2)}
        for transport in (server, kiosk1, kiosk2):
            await transport.connect()

        assert await server.broadcast({"type": "server_heartbeat"}, "p") is True

        assert inboxes["server"] == []
        assert len(inboxes["kiosk-1"]) == 1
        assert len(inboxes["kiosk-2"]) == 1
        assert inboxes["kiosk-1"][0].unicast is False

    @pytest.mark.asyncio
    async def test_unicast_reaches_only_recipient(self):
        hub = LoopbackHub()
        server, kiosk1, kiosk2 = (hub.endpoint(n) for n in ("server", "kiosk-1", "kiosk-2"))
        inbox1, inbox2 = collect(kiosk1), collect(kiosk2)
        for transport in (server, kiosk1, kiosk2):
            await transport.connect()

        await server.send("kiosk-1", {"type": "heartbeat_response"}, "p")

        assert len(inbox1) == 1
        assert inbox1[0].unicast is True
        assert inbox2 == []
        assert [d.recipient for d in hub.deliveries] == ["kiosk-1"]

    @pytest.mark.asyncio
    async def test_send_to_unknown_node_is_lost(self):
        hub = LoopbackHub()
        server = hub.endpoint("server")
        await server.connect()

        assert await server.send("nobody", {"type": "heartbeat_response"}, "p") is True
        assert hub.deliveries == []

    @pytest.mark.asyncio
    async def test_disconnected_endpoint(self):
        hub = LoopbackHub()
        server, kiosk = hub.endpoint("server"), hub.endpoint("kiosk-1")
        inbox = collect(kiosk)
        await server.connect()

        assert await kiosk.broadcast({}, "p") is False
        await server.broadcast({"type": "server_heartbeat"}, "p")
        assert inbox == []

    @pytest.mark.asyncio
    async def test_loss_and_duplication(self):
        hub = LoopbackHub(loss=1.0)
        server, kiosk = hub.endpoint("server"), hub.endpoint("kiosk-1")
        inbox = collect(kiosk)
        await server.connect()
        await kiosk.connect()

        await server.broadcast({"type": "server_heartbeat"}, "p")
        assert inbox == []

        hub.loss, hub.duplicate = 0.0, 1.0
        await server.broadcast({"type": "server_heartbeat"}, "p")
        assert len(inbox) == 2

    @pytest.mark.asyncio
    async def test_hold_and_release(self):
        hub = LoopbackHub(seed=1)
        server, kiosk = hub.endpoint("server"), hub.endpoint("kiosk-1")
        inbox = collect(kiosk)
        await server.connect()
        await kiosk.connect()

        hub.hold()
        for n in range(5):
            await server.broadcast({"n": n}, "p")
        assert inbox == []

        assert hub.release(shuffle=True) == 5
        assert sorted(d.message["n"] for d in inbox) == [0, 1, 2, 3, 4]

    def test_inject_drops_own_echo(self):
        hub = LoopbackHub()
        kiosk = hub.endpoint("kiosk-1")
        inbox = collect(kiosk)

        kiosk.inject(Datagram(sender="kiosk-1", protocol="p", message={}))
        kiosk.inject(Datagram(sender="server", protocol="p", message={}))

        assert [d.sender for d in inbox] == ["server"]


@pytest.fixture
def mqtt_config():
    return MQTTConfig(broker="broker.local", topic_root="news")


class TestMQTTTransport:
    """Tests for MQTTTransport with a mocked paho client."""

    def test_topics(self, mqtt_config):
        with patch("newscast.transport.mqtt_client.mqtt.Client"):
            transport = MQTTTransport(mqtt_config, "kiosk-1")

        assert transport.broadcast_topic == "news/broadcast"
        assert transport.unicast_topic("kiosk-1") == "news/to/kiosk-1"

    def test_subscribes_on_connect(self, mqtt_config):
        with patch("newscast.transport.mqtt_client.mqtt.Client"):
            transport = MQTTTransport(mqtt_config, "kiosk-1")
        paho = MagicMock()

        transport._handle_connect(paho, None, None, 0)

        assert transport.is_connected
        topics = [c.args[0] for c in paho.subscribe.call_args_list]
        assert topics == ["news/broadcast", "news/to/kiosk-1"]

    def test_failed_connect_reason(self, mqtt_config):
        with patch("newscast.transport.mqtt_client.mqtt.Client"):
            transport = MQTTTransport(mqtt_config, "kiosk-1")

        transport._handle_connect(MagicMock(), None, None, 5)

        assert not transport.is_connected

    def test_handle_message(self, mqtt_config):
        """Test that frames are delivered with their topic's direction."""
        with patch("newscast.transport.mqtt_client.mqtt.Client"):
            transport = MQTTTransport(mqtt_config, "kiosk-1")
        inbox = collect(transport)
        frame = encode_frame("server", "poggish_news", {"type": "full_sync", "articles": {}})

        transport._handle_message(None, None, MagicMock(topic="news/to/kiosk-1", payload=frame.encode()))
        transport._handle_message(None, None, MagicMock(topic="news/broadcast", payload=frame.encode()))
        transport._handle_message(None, None, MagicMock(topic="news/broadcast", payload=b"noise"))

        assert [d.unicast for d in inbox] == [True, False]

    def test_handle_message_drops_own_echo(self, mqtt_config):
        with patch("newscast.transport.mqtt_client.mqtt.Client"):
            transport = MQTTTransport(mqtt_config, "kiosk-1")
        inbox = collect(transport)
        frame = encode_frame("kiosk-1", "poggish_news", {"type": "heartbeat", "clientId": "kiosk-1"})

        transport._handle_message(None, None, MagicMock(topic="news/broadcast", payload=frame.encode()))

        assert inbox == []

    @pytest.mark.asyncio
    async def test_broadcast_and_send(self, mqtt_config):
        with patch("newscast.transport.mqtt_client.mqtt.Client") as client_cls:
            client_cls.return_value.publish.return_value = MagicMock(rc=0)
            transport = MQTTTransport(mqtt_config, "server")
        transport._connected = True

        assert await transport.broadcast({"type": "server_heartbeat"}, "poggish_news") is True
        assert await transport.send("kiosk-1", {"type": "heartbeat_response"}, "poggish_news") is True

        calls = transport._client.publish.call_args_list
        assert calls[0].args[0] == "news/broadcast"
        assert calls[1].args[0] == "news/to/kiosk-1"
        assert json.loads(calls[1].args[1])["sender"] == "server"

    @pytest.mark.asyncio
    async def test_publish_when_disconnected(self, mqtt_config):
        with patch("newscast.transport.mqtt_client.mqtt.Client"):
            transport = MQTTTransport(mqtt_config, "server")

        assert await transport.broadcast({"type": "server_heartbeat"}, "p") is False
        transport._client.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_connect_error(self, mqtt_config):
        with patch("newscast.transport.mqtt_client.mqtt.Client") as client_cls:
            client_cls.return_value.connect.side_effect = OSError("refused")
            transport = MQTTTransport(mqtt_config, "server")

        assert await transport.connect() is False

    @pytest.mark.asyncio
    async def test_connect_uses_credentials(self):
        config = MQTTConfig(broker="broker.local", username="user", password="secret")
        with patch("newscast.transport.mqtt_client.mqtt.Client") as client_cls:
            paho = client_cls.return_value
            transport = MQTTTransport(config, "server")
            paho.loop_start.side_effect = lambda: transport._handle_connect(paho, None, None, 0)

            assert await transport.connect() is True

        paho.username_pw_set.assert_called_once_with("user", "secret")
        paho.connect.assert_called_once_with("broker.local", 1883, keepalive=60)
