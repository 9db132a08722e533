from __future__ import annotations

import random
import sys
import time
from typing import Any, Callable, List, Optional

from websocket import WebSocketException, WebSocketTimeoutException

from quoteterm.errors import StreamClosedError
from quoteterm.integrations.sina_codec import decode_frames, encode_symbols
from quoteterm.schemas.quote import Quote


class SinaWsClient:
    """Sina streaming quote client: one connection, one handler, periodic liveness frames.

    The first frame after connecting carries every subscribed symbol; later
    frames usually carry only the symbols that changed.
    """

    def __init__(
        self,
        on_quotes: Optional[Callable[[List[Quote]], None]] = None,
        *,
        ws_url: str = "wss://hq.sinajs.cn/wskt",
        origin: str = "https://finance.sina.com.cn",
        ping_interval_sec: float = 60.0,
        connection_factory: Optional[Callable[..., Any]] = None,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[Callable[..., None]] = None,
        debug: bool = False,
    ) -> None:
        self._on_quotes = on_quotes
        self.ws_url = ws_url
        self.origin = origin
        self.ping_interval_sec = ping_interval_sec
        self._connection_factory = connection_factory or self._default_connection_factory
        self._clock = clock
        self._on_state_change = on_state_change
        self.debug = debug
        self.running = False
        self.last_error: str | None = None
        self.reconnect_count = 0
        self.frames_received = 0
        self.pings_sent = 0
        self._connection: Any = None

    def _trace(self, message: str) -> None:
        if self.debug:
            print(message, file=sys.stderr, flush=True)

    def _emit_state(self, *, connected: bool, heartbeat_ts: int | None = None) -> None:
        if self._on_state_change is None:
            return
        self._on_state_change(
            connected=connected,
            reconnect_count=self.reconnect_count,
            last_error=self.last_error,
            heartbeat_ts=heartbeat_ts,
        )

    def _default_connection_factory(self, *args: Any, **kwargs: Any) -> Any:
        from websocket import create_connection

        return create_connection(*args, **kwargs)

    def set_on_quotes(self, callback: Callable[[List[Quote]], None]) -> None:
        self._on_quotes = callback

    def stop(self) -> None:
        self.running = False
        self._emit_state(connected=False)

    def build_url(self, symbols: List[str]) -> str:
        return f"{self.ws_url}?list={encode_symbols(symbols)}"

    def handle_raw_message(self, raw_message: str) -> List[Quote]:
        quotes = decode_frames(raw_message, debug=self.debug)
        if self._on_quotes is not None:
            self._on_quotes(quotes)
        return quotes

    def _close_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            connection.close()
        except (WebSocketException, OSError) as exc:
            self._trace(f"[WS][ws_close_error] {exc}")

    def connect_and_stream(self, symbols: List[str]) -> None:
        """Stream until stop() is called; raise StreamClosedError when the transport drops."""
        if not symbols:
            raise ValueError("at least one symbol is required")

        url = self.build_url(symbols)
        self.running = True
        self._trace(f"[WS][ws_connect] url={url}")
        try:
            self._connection = self._connection_factory(url, origin=self.origin)
        except (WebSocketException, OSError) as exc:
            self.last_error = str(exc)
            self._emit_state(connected=False)
            raise StreamClosedError(f"ws_connect_failed: {exc}") from exc

        self._trace("[WS][ws_connect_result] status=open")
        self._emit_state(connected=True, heartbeat_ts=int(time.time()))
        next_ping = self._clock() + self.ping_interval_sec

        try:
            while self.running:
                now = self._clock()
                if now >= next_ping:
                    self._connection.send("")
                    self.pings_sent += 1
                    next_ping += self.ping_interval_sec
                    self._trace(f"[WS][ws_ping] count={self.pings_sent}")
                    self._emit_state(connected=True, heartbeat_ts=int(time.time()))
                    continue

                self._connection.settimeout(next_ping - now)
                try:
                    message = self._connection.recv()
                except WebSocketTimeoutException:
                    continue

                if not isinstance(message, str) or not message:
                    continue
                self.frames_received += 1
                self._trace(f"[WS][ws_message] bytes={len(message)}")
                self.handle_raw_message(message)
        except (WebSocketException, OSError) as exc:
            self.last_error = str(exc) or exc.__class__.__name__
            self._trace(f"[WS][ws_error] {self.last_error}")
            self._emit_state(connected=False)
            raise StreamClosedError(self.last_error) from exc
        finally:
            self._close_connection()

    def run_with_reconnect(
        self,
        symbols: List[str],
        *,
        sleep_fn: Callable[[float], None] = time.sleep,
        jitter_fn: Callable[[float, float], float] = random.uniform,
        max_retries: int = 5,
        backoff_base_sec: float = 1.0,
        backoff_cap_sec: float = 30.0,
    ) -> bool:
        """Keep the subscription streaming across drops with jittered exponential backoff.

        Returns True when an open stream was ended by stop(); False when retries
        run out or stop() lands between attempts.
        The retry budget starts over after any connection that delivered a frame.
        """
        if max_retries < 1:
            return False

        self.running = True
        self.last_error = None
        self.reconnect_count = 0
        attempt = 0

        while True:
            frames_before = self.frames_received
            try:
                self.connect_and_stream(symbols)
                return True
            except StreamClosedError as exc:
                self.last_error = str(exc)
                self.reconnect_count += 1
                self._emit_state(connected=False)

            if not self.running:
                return False
            if self.frames_received > frames_before:
                attempt = 0
            if attempt >= max_retries - 1:
                return False

            backoff = min(backoff_base_sec * (2**attempt), backoff_cap_sec)
            delay = backoff + jitter_fn(0.0, backoff / 2)
            self._trace(f"[WS][ws_reconnect] attempt={attempt + 1} delay={delay:.2f}")
            sleep_fn(delay)
            attempt += 1
            if not self.running:
                return False
