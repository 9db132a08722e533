from __future__ import annotations

import re
import sys
from typing import Any, List, Optional
from urllib.parse import quote

import requests

from quoteterm.errors import QuoteServiceError
from quoteterm.integrations import sina_corp
from quoteterm.integrations.sina_codec import decode_snapshot, encode_symbols
from quoteterm.schemas.quote import Exchange, Investment, Quote
from quoteterm.schemas.stock import Dividend, Financial, Press, Profile, Stock, Structure

# A-share stock 11-15, fund 21-26, HK 31, US 41
_SUGGEST_TYPES = "11,12,13,14,15,21,22,23,24,25,26,31,41"
_QUOTED_RE = re.compile(r'"(.*)"')


class SinaRestClient:
    """Snapshot quote, symbol suggest and company page client for the Sina quote service."""

    def __init__(
        self,
        session: Optional[Any] = None,
        *,
        hq_url: str = "https://hq.sinajs.cn",
        suggest_url: str = "https://suggest3.sinajs.cn/suggest",
        portal: str = "https://finance.sina.com.cn",
        corp_url: str = "https://vip.stock.finance.sina.com.cn/corp/go.php",
        finance_url: str = "https://money.finance.sina.com.cn/corp/go.php",
        timeout: float = 10.0,
        debug: bool = False,
    ) -> None:
        self.session = session or requests
        self.hq_url = hq_url.rstrip("/")
        self.suggest_url = suggest_url.rstrip("/")
        self.portal = portal
        self.corp_url = corp_url.rstrip("/")
        self.finance_url = finance_url.rstrip("/")
        self.timeout = timeout
        self.debug = debug

    def _trace(self, message: str) -> None:
        if self.debug:
            print(message, file=sys.stderr, flush=True)

    def _request(self, url: str) -> str:
        try:
            response = self.session.get(
                url,
                headers={"Referer": self.portal},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise QuoteServiceError(f"request failed: {exc}") from exc

        # the quote service answers in GBK without declaring it
        response.encoding = "gbk"
        content = response.text
        if response.status_code != 200:
            raise QuoteServiceError(
                f"request returned http {response.status_code}: {content[:200]}",
                status_code=response.status_code,
            )
        self._trace(f"[HQ][http_get] url={url} status={response.status_code} bytes={len(content)}")
        return content

    def get_quotes(self, symbols: List[str]) -> List[Quote]:
        wire = encode_symbols(symbols)
        if not wire:
            return []
        content = self._request(f"{self.hq_url}/list={wire}")
        return decode_snapshot(content, debug=self.debug)

    def get_quote(self, symbol: str) -> Optional[Quote]:
        quotes = self.get_quotes([symbol])
        return quotes[0] if quotes else None

    def search(self, query: str, limit: int = 10) -> List[Investment]:
        content = self._request(f"{self.suggest_url}/type={_SUGGEST_TYPES}&key={quote(query)}")
        match = _QUOTED_RE.search(content)
        if match is None or not match.group(1):
            return []

        investments: List[Investment] = []
        for piece in match.group(1).split(";"):
            values = piece.split(",")
            # values[8] is the listed flag
            if len(values) < 9 or values[8] != "1":
                continue

            kind = values[1]
            symbol = values[3].upper()
            market = None
            exchange = None
            if kind in ("11", "12", "13", "14", "15"):
                market = "stock"
                try:
                    exchange = Exchange.from_symbol(symbol)
                except ValueError:
                    exchange = None
            elif kind in ("21", "22", "23", "24", "25", "26"):
                market = "fund"
            elif kind == "31":
                market = "stock"
                exchange = Exchange.HK
                symbol = "HK" + symbol
            elif kind in ("41", "42"):
                market = "stock"

            investments.append(
                Investment(
                    code=values[2],
                    symbol=symbol,
                    name=values[4],
                    market=market,
                    exchange=exchange,
                )
            )
            if len(investments) >= limit:
                break

        return investments

    def profile(self, symbol: str) -> Profile:
        code = _stock_code(symbol)
        wire = symbol.strip().lower()
        corp = self._request(f"{self.corp_url}/vCI_CorpInfo/stockid/{code}.phtml")
        hq = self._request(f"{self.hq_url}/list={wire},{wire}_i")
        return sina_corp.parse_profile(corp, hq)

    def financials(self, code: str) -> List[Financial]:
        content = self._request(f"{self.finance_url}/vFD_FinanceSummary/stockid/{code}.phtml")
        return sina_corp.parse_financials(content)

    def structures(self, code: str) -> List[Structure]:
        content = self._request(f"{self.corp_url}/vCI_StockHolder/stockid/{code}.phtml")
        return sina_corp.parse_structures(content)

    def dividends(self, code: str) -> List[Dividend]:
        content = self._request(f"{self.corp_url}/vISSUE_ShareBonus/stockid/{code}.phtml")
        return sina_corp.parse_dividends(content)

    def presses(self, code: str) -> List[Press]:
        content = self._request(f"{self.corp_url}/vCB_AllBulletin/stockid/{code}.phtml")
        return sina_corp.parse_presses(content, self.corp_url)

    def stock(
        self,
        symbol: str,
        *,
        financials: bool = False,
        structures: bool = False,
        dividends: bool = False,
        presses: bool = False,
    ) -> Stock:
        """Profile plus whichever company pages are requested."""
        code = _stock_code(symbol)
        stock = Stock(symbol=symbol.strip().upper(), profile=self.profile(symbol))
        if financials:
            stock.financials = self.financials(code)
        if structures:
            stock.structures = self.structures(code)
        if dividends:
            stock.dividends = self.dividends(code)
        if presses:
            stock.presses = self.presses(code)
        return stock


def _stock_code(symbol: str) -> str:
    """``SH601318`` -> ``601318``; company pages only cover mainland listings."""
    value = symbol.strip().upper()
    if Exchange.from_symbol(value).family != "mainland":
        raise ValueError(f"company pages only cover mainland listings: {symbol!r}")
    return value[2:]
