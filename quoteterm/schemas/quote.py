from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel


class Exchange(str, Enum):
    SH = "SH"
    SZ = "SZ"
    BJ = "BJ"
    HK = "HK"

    @property
    def family(self) -> str:
        return "hk" if self is Exchange.HK else "mainland"

    @classmethod
    def from_symbol(cls, symbol: str) -> "Exchange":
        return _resolve_exchange(str(symbol)[:2].upper())


@lru_cache(maxsize=None)
def _resolve_exchange(prefix: str) -> Exchange:
    try:
        return Exchange(prefix)
    except ValueError as exc:
        raise ValueError(f"unsupported or invalid exchange prefix: {prefix!r}") from exc


class Quote(BaseModel):
    symbol: str = ""
    name: str = ""
    now: float = 0.0
    close: float = 0.0
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    buy: float = 0.0
    sell: float = 0.0
    turnover: float = 0.0
    volume: float = 0.0
    date: str = ""
    time: str = ""

    @property
    def change_pct(self) -> float:
        return (self.now / self.close - 1) * 100


class Investment(BaseModel):
    code: str
    symbol: str
    name: str
    market: Literal["stock", "fund"] | None = None
    exchange: Exchange | None = None
