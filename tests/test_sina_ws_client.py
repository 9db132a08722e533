import unittest

from websocket import WebSocketConnectionClosedException, WebSocketTimeoutException

from quoteterm.errors import StreamClosedError
from quoteterm.integrations.sina_ws import SinaWsClient

SH_FRAME = (
    "sh600000=浦发银行,8.10,8.05,8.12,8.20,8.01,8.11,8.12,1000,8100,"
    + ",".join(["0"] * 20)
    + ",2024-05-10,15:00:00,00\n"
)
HK_FRAME = (
    "rt_hk00700=TENCENT,腾讯控股,371,366.4,380.4,370,377.2,10.8,2.948,377,377.2,"
    "7860991814,20901992,0,0,658,297,2024/05/10,16:08\n"
)


class _FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class _FakeConnection:
    """Replays scripted events: ("msg", payload, elapsed_sec) or ("idle",)."""

    def __init__(self, events, clock):
        self.events = list(events)
        self.clock = clock
        self.timeout = None
        self.sent = []
        self.closed = False

    def settimeout(self, timeout):
        self.timeout = timeout

    def recv(self):
        if not self.events:
            raise WebSocketConnectionClosedException("Connection to remote host was lost.")
        event = self.events.pop(0)
        if event[0] == "idle":
            self.clock.now += self.timeout
            raise WebSocketTimeoutException("timed out")
        self.clock.now += event[2] if len(event) > 2 else 0.0
        return event[1]

    def send(self, payload):
        self.sent.append((self.clock.now, payload))

    def close(self):
        self.closed = True


class _FakeFactory:
    def __init__(self, *connections):
        self.connections = list(connections)
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self.connections.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class TestSinaWsClient(unittest.TestCase):
    def _client(self, factory, clock, received):
        return SinaWsClient(
            on_quotes=received.append,
            ws_url="wss://ws.example.test/wskt",
            origin="https://portal.example.test",
            ping_interval_sec=60.0,
            connection_factory=factory,
            clock=clock,
        )

    def test_build_url_encodes_subscription(self):
        client = SinaWsClient(ws_url="wss://ws.example.test/wskt")

        self.assertEqual(
            client.build_url(["SH600000", "HK00700"]),
            "wss://ws.example.test/wskt?list=sh600000,rt_hk00700",
        )

    def test_frames_are_decoded_and_delivered_in_wire_order(self):
        clock = _FakeClock()
        connection = _FakeConnection([("msg", SH_FRAME + HK_FRAME), ("msg", HK_FRAME)], clock)
        factory = _FakeFactory(connection)
        received = []
        client = self._client(factory, clock, received)

        with self.assertRaises(StreamClosedError):
            client.connect_and_stream(["SH600000", "HK00700"])

        self.assertEqual(
            factory.calls,
            [
                (
                    "wss://ws.example.test/wskt?list=sh600000,rt_hk00700",
                    {"origin": "https://portal.example.test"},
                )
            ],
        )
        self.assertEqual([[q.symbol for q in batch] for batch in received], [["SH600000", "HK00700"], ["HK00700"]])
        self.assertEqual(received[1][0].now, 377.2)
        self.assertEqual(client.frames_received, 2)
        self.assertTrue(connection.closed)
        self.assertIn("lost", client.last_error)

    def test_liveness_frame_is_sent_when_idle(self):
        clock = _FakeClock()
        connection = _FakeConnection([("idle",), ("idle",), ("msg", SH_FRAME)], clock)
        received = []
        client = self._client(_FakeFactory(connection), clock, received)

        with self.assertRaises(StreamClosedError):
            client.connect_and_stream(["SH600000"])

        self.assertEqual(connection.sent, [(60.0, ""), (120.0, "")])
        self.assertEqual(client.pings_sent, 2)
        self.assertEqual(len(received), 1)

    def test_liveness_frame_is_not_gated_on_inbound_traffic(self):
        clock = _FakeClock()
        connection = _FakeConnection([("msg", SH_FRAME, 35.0), ("msg", SH_FRAME, 35.0)], clock)
        received = []
        client = self._client(_FakeFactory(connection), clock, received)

        with self.assertRaises(StreamClosedError):
            client.connect_and_stream(["SH600000"])

        self.assertEqual(connection.sent, [(70.0, "")])
        self.assertEqual(len(received), 2)

    def test_empty_and_binary_frames_are_ignored(self):
        clock = _FakeClock()
        connection = _FakeConnection([("msg", ""), ("msg", b"\x00\x01"), ("msg", SH_FRAME)], clock)
        received = []
        client = self._client(_FakeFactory(connection), clock, received)

        with self.assertRaises(StreamClosedError):
            client.connect_and_stream(["SH600000"])

        self.assertEqual(len(received), 1)
        self.assertEqual(client.frames_received, 1)

    def test_unresolvable_frames_still_deliver_the_rest_of_the_batch(self):
        clock = _FakeClock()
        connection = _FakeConnection([("msg", "gb_aapl=Apple,170\n" + SH_FRAME)], clock)
        received = []
        client = self._client(_FakeFactory(connection), clock, received)

        with self.assertRaises(StreamClosedError):
            client.connect_and_stream(["SH600000"])

        self.assertEqual([q.symbol for q in received[0]], ["SH600000"])

    def test_stop_from_handler_ends_stream_without_error(self):
        clock = _FakeClock()
        connection = _FakeConnection([("msg", SH_FRAME), ("msg", SH_FRAME)], clock)
        received = []
        client = self._client(_FakeFactory(connection), clock, received)
        client.set_on_quotes(lambda quotes: (received.append(quotes), client.stop()))

        client.connect_and_stream(["SH600000"])

        self.assertEqual(len(received), 1)
        self.assertFalse(client.running)
        self.assertTrue(connection.closed)

    def test_connect_failure_raises_stream_closed(self):
        received = []
        client = self._client(_FakeFactory(OSError("connection refused")), _FakeClock(), received)

        with self.assertRaises(StreamClosedError):
            client.connect_and_stream(["SH600000"])

        self.assertEqual(client.last_error, "connection refused")
        self.assertEqual(received, [])

    def test_empty_subscription_is_rejected(self):
        client = SinaWsClient()

        with self.assertRaises(ValueError):
            client.connect_and_stream([])


if __name__ == "__main__":
    unittest.main()
