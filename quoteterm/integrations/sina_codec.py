from __future__ import annotations

import math
import re
import sys
from typing import Any, Dict, List, NamedTuple, Optional

from quoteterm.schemas.quote import Exchange, Quote

REALTIME_PREFIX = "rt_"

_FRAME_RE = re.compile(r"^(?:rt_)?([a-z]{2}[a-z0-9]+)=(.*?)\r?$", re.MULTILINE)
_SNAPSHOT_RE = re.compile(r'hq_str_(?:rt_)?([a-z]{2}[a-z0-9]+)="(.*)"')


class FieldLayout(NamedTuple):
    name: int
    open: int
    close: int
    now: int
    high: int
    low: int
    buy: int
    sell: int
    turnover: int
    volume: int
    date: int
    time: int


_MAINLAND_LAYOUT = FieldLayout(
    name=0, open=1, close=2, now=3, high=4, low=5, buy=6, sell=7,
    turnover=8, volume=9, date=30, time=31,
)
_HK_LAYOUT = FieldLayout(
    name=1, open=2, close=3, now=6, high=4, low=5, buy=6, sell=6,
    turnover=12, volume=11, date=17, time=18,
)

FIELD_LAYOUTS: Dict[Exchange, FieldLayout] = {
    Exchange.SH: _MAINLAND_LAYOUT,
    Exchange.SZ: _MAINLAND_LAYOUT,
    Exchange.BJ: _MAINLAND_LAYOUT,
    Exchange.HK: _HK_LAYOUT,
}


def _to_float_default(value: Any, default: float = 0.0) -> float:
    try:
        if value is None or value == "":
            return default
        result = float(value)
    except (TypeError, ValueError):
        return default
    # nan/inf parse but are not prices
    if not math.isfinite(result):
        return default
    return result


def _field(values: List[str], index: int) -> str:
    if index < len(values):
        return values[index].strip()
    return ""


def encode_symbol(symbol: str) -> str:
    """Wire form of a symbol; Hong Kong needs ``rt_`` for live data."""
    value = str(symbol).strip().lower()
    if value.startswith("hk"):
        return REALTIME_PREFIX + value
    return value


def encode_symbols(symbols: List[str]) -> str:
    return ",".join(encode_symbol(s) for s in symbols if str(s).strip())


def decode_symbol(key: str) -> str:
    value = str(key).strip()
    if value.lower().startswith(REALTIME_PREFIX):
        value = value[len(REALTIME_PREFIX):]
    return value.upper()


def decode_quote(symbol: str, payload: str, exchange: Optional[Exchange] = None) -> Quote:
    """Decode one comma-separated field list into a Quote.

    Raises ValueError only when ``exchange`` is omitted and cannot be
    resolved from ``symbol``; payload content never raises.
    """
    canonical = decode_symbol(symbol)
    if exchange is None:
        exchange = Exchange.from_symbol(canonical)
    layout = FIELD_LAYOUTS[exchange]
    values = str(payload).split(",")

    date = _field(values, layout.date)
    if exchange.family == "hk":
        date = date.replace("/", "-")

    return Quote(
        symbol=canonical,
        name=_field(values, layout.name),
        now=_to_float_default(_field(values, layout.now)),
        close=_to_float_default(_field(values, layout.close)),
        open=_to_float_default(_field(values, layout.open)),
        high=_to_float_default(_field(values, layout.high)),
        low=_to_float_default(_field(values, layout.low)),
        buy=_to_float_default(_field(values, layout.buy)),
        sell=_to_float_default(_field(values, layout.sell)),
        turnover=_to_float_default(_field(values, layout.turnover)),
        volume=_to_float_default(_field(values, layout.volume)),
        date=date,
        time=_field(values, layout.time),
    )


def _decode_matches(pattern: re.Pattern, text: str, *, debug: bool = False) -> List[Quote]:
    quotes: List[Quote] = []
    for match in pattern.finditer(text):
        key, payload = match.group(1), match.group(2)
        try:
            exchange = Exchange.from_symbol(key)
        except ValueError as exc:
            if debug:
                print(f"[HQ][frame_skip] key={key} reason={exc}", file=sys.stderr, flush=True)
            continue
        quotes.append(decode_quote(key, payload, exchange))
    return quotes


def decode_frames(text: str, *, debug: bool = False) -> List[Quote]:
    """Decode a streaming frame: one ``key=fields`` assignment per line."""
    return _decode_matches(_FRAME_RE, str(text), debug=debug)


def decode_snapshot(text: str, *, debug: bool = False) -> List[Quote]:
    """Decode a snapshot body: ``var hq_str_key="fields";`` per line."""
    return _decode_matches(_SNAPSHOT_RE, str(text), debug=debug)
