from __future__ import annotations

import math
import sys
from typing import Any, Dict, List, Optional, TextIO

from quoteterm.schemas.quote import Quote

RED = "31"
GREEN = "32"
GREY = "90"
PLACEHOLDER = "-"

_HUNDRED_MILLION = 100_000_000
_TEN_THOUSAND = 10_000


def _c(code: str, s: str, enabled: bool) -> str:
    return f"\x1b[{code}m{s}\x1b[0m" if enabled else s


def _fmt_price(value: Any) -> str:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return PLACEHOLDER
    if not math.isfinite(price):
        return PLACEHOLDER
    return f"{price:.2f}"


def format_amount(value: Any) -> str:
    """Abbreviate turnover/volume: 亿 above 1e8, 万 above 1e4, ``-`` for zero."""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return PLACEHOLDER
    if amount == 0 or not math.isfinite(amount):
        return PLACEHOLDER
    if abs(amount) >= _HUNDRED_MILLION:
        return f"{amount / _HUNDRED_MILLION:.2f}亿"
    if abs(amount) >= _TEN_THOUSAND:
        return f"{amount / _TEN_THOUSAND:.2f}万"
    return f"{amount:.2f}"


def change_pct(quote: Quote) -> Optional[float]:
    try:
        pct = float(quote.change_pct)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    return pct if math.isfinite(pct) else None


def change_color(pct: Optional[float]) -> str:
    if pct is None or pct == 0:
        return GREY
    return RED if pct > 0 else GREEN


def format_quote(quote: Quote, *, color: bool = True) -> str:
    """One terminal line: ``date time  price pct  close open high low  turnover volume name``."""
    pct = change_pct(quote)
    pct_text = PLACEHOLDER if pct is None else f"{pct:+.2f}%"
    price = _c(change_color(pct), f"{_fmt_price(quote.now)} {pct_text}", color)
    prices = " ".join(_fmt_price(v) for v in (quote.close, quote.open, quote.high, quote.low))
    amounts = f"{format_amount(quote.turnover)} {format_amount(quote.volume)}"
    return f"{quote.date} {quote.time}  {price}  {prices}  {amounts} {quote.name}"


class LiveRenderer:
    """Keeps each symbol's latest quote on a fixed terminal line.

    Lines are handed out in order of first appearance and never reused, so
    batches may arrive in any order and hold any subset of the subscription.
    ``cursor_line`` is the last line written; the physical cursor rests at
    the start of the line below it.
    """

    def __init__(self, out: Optional[TextIO] = None, *, color: bool = True, single: bool = False) -> None:
        self.out = out or sys.stdout
        self.color = color
        self.single = single
        self.first_batch_written = False
        self.last_known_width = 0
        self.positions: Dict[str, int] = {}
        self.cursor_line = -1

    def _format(self, quote: Quote) -> str:
        try:
            return format_quote(quote, color=self.color)
        except (TypeError, ValueError, AttributeError):
            return f"{getattr(quote, 'symbol', '')} {PLACEHOLDER}"

    def _write_line(self, quote: Quote) -> None:
        self.out.write("\r\x1b[2K" + self._format(quote) + "\n")

    def _move_to(self, line: int) -> None:
        if self.cursor_line >= line:
            self.out.write(f"\x1b[{self.cursor_line - line + 1}A")
        elif line > self.cursor_line + 1:
            self.out.write(f"\x1b[{line - self.cursor_line - 1}B")

    def render(self, quotes: List[Quote]) -> None:
        if not quotes:
            return

        if self.single and not self.first_batch_written and len(quotes) == 1:
            self._write_line(quotes[0])
            self.positions[quotes[0].symbol] = 0
            self.cursor_line = 0
            self.last_known_width = 1
            self.first_batch_written = True
            self.out.flush()
            return

        for quote in quotes:
            line = self.positions.get(quote.symbol)
            if line is None:
                line = len(self.positions)
                self.positions[quote.symbol] = line
            self._move_to(line)
            self._write_line(quote)
            self.cursor_line = line

        if not self.first_batch_written:
            self.first_batch_written = True
            self.last_known_width = len(self.positions)
        self.out.flush()
