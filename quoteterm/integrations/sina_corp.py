from __future__ import annotations

import math
import re
from typing import Any, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from quoteterm.integrations.sina_codec import decode_snapshot
from quoteterm.schemas.stock import Dividend, Financial, Holder, Press, Profile, Structure

FINANCIAL_PERIODS = 8
STRUCTURE_PERIODS = 4

_FINANCIAL_CELLS = 12
_STRUCTURE_ROWS = 17
_DIVIDEND_CELLS = 9

_DIGITS_RE = re.compile(r"\d+")
_INFO_RE = re.compile(r'hq_str_[a-z0-9]+_i="(.*)"')


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _text(node: Any) -> str:
    if node is None:
        return ""
    return node.get_text(strip=True)


def _number(value: Any) -> float:
    text = str(value or "").replace(",", "").replace("元", "").strip()
    try:
        result = float(text)
    except ValueError:
        return 0.0
    return result if math.isfinite(result) else 0.0


def _first_int(value: str) -> float:
    match = _DIGITS_RE.search(value or "")
    return float(match.group(0)) if match else 0.0


def _groups(items: List[Any], size: int, limit: Optional[int] = None) -> List[List[Any]]:
    groups = [items[i:i + size] for i in range(0, len(items), size)]
    if limit is not None:
        groups = groups[:limit]
    return groups


def _at(items: List[Any], index: int) -> Any:
    return items[index] if index < len(items) else None


def _growth(current: float, previous: float) -> float:
    if not previous:
        return 0.0
    return (current - previous) / previous * 100


def parse_profile(corp_html: str, hq_text: str = "") -> Profile:
    """Company card from the corp info page plus the ``sym,sym_i`` hq lines.

    The info line carries eps at 5, total shares at 7 and tradable shares at
    8 (both in units of 10k shares) and the industry at 34.
    """
    profile = Profile()
    cells = _soup(corp_html).select("#comInfo1 td")

    def cell(index: int, link: bool = False) -> str:
        td = _at(cells, index)
        if td is None:
            return ""
        if link and td.find("a") is not None:
            return _text(td.find("a"))
        return _text(td)

    profile.name = cell(1)
    profile.listing_date = cell(7, link=True)
    profile.listing_price = _number(cell(9))
    profile.website = cell(35, link=True)
    profile.used_name = cell(41)
    profile.business_address = cell(45)
    profile.business = cell(49)

    quotes = decode_snapshot(hq_text)
    if quotes:
        profile.price = quotes[0].now
        if not profile.used_name:
            profile.used_name = quotes[0].name

    match = _INFO_RE.search(hq_text or "")
    if match:
        info = match.group(1).split(",")
        eps = _number(_at(info, 5))
        cap = _number(_at(info, 7))
        traded_cap = _number(_at(info, 8))
        profile.pb = profile.price / eps if eps else 0.0
        profile.category = (_at(info, 34) or "").strip()
        profile.market_cap = profile.price * cap * 10000
        profile.traded_market_cap = profile.price * traded_cap * 10000

    return profile


def parse_financials(html: str) -> List[Financial]:
    """Latest four periods with year-over-year growth.

    The summary table lists periods newest first, so the same period a year
    earlier sits four groups further down.
    """
    cells = [_text(td) for td in _soup(html).select("#FundHoldSharesTable tr td:last-child")]
    periods = []
    for group in _groups(cells, _FINANCIAL_CELLS, FINANCIAL_PERIODS):
        periods.append(
            Financial(
                date=_at(group, 0) or "",
                ps_net_assets=_number(_at(group, 1)),
                ps_capital_reserve=_number(_at(group, 3)),
                total_revenue=_number(_at(group, 8)),
                net_profit=_number(_at(group, 10)),
            )
        )

    results: List[Financial] = []
    for i, current in enumerate(periods[:4]):
        previous = _at(periods, i + 4)
        if previous is not None:
            current.total_revenue_rate = _growth(current.total_revenue, previous.total_revenue)
            current.net_profit_rate = _growth(current.net_profit, previous.net_profit)
        results.append(current)
    return results


def _holder(tr: Any) -> Holder:
    divs = tr.select("td div")
    return Holder(
        name=_text(_at(divs, 1)),
        shares=_number(_text(_at(divs, 2))),
        percent=_number(_text(_at(divs, 3))),
        shares_type=_text(_at(divs, 4)),
    )


def parse_structures(html: str) -> List[Structure]:
    """Shareholder structure per reporting date; each block is 17 rows."""
    rows = _soup(html).select("#Table1 tbody tr")
    structures: List[Structure] = []
    for group in _groups(rows, _STRUCTURE_ROWS, STRUCTURE_PERIODS):
        values = [_text(tr.select_one("td:last-child")) for tr in group]
        structure = Structure(
            date=_at(values, 0) or "",
            holders_num=_first_int(_at(values, 3) or ""),
            shares_avg=_first_int(_at(values, 4) or ""),
        )
        # rows 6-15 are the ten largest holders
        structure.holders_ten = [_holder(tr) for tr in group[6:16]]
        structures.append(structure)
    return structures


def parse_dividends(html: str) -> List[Dividend]:
    cells = [_text(td) for td in _soup(html).select("#sharebonus_1 tr td")]
    dividends: List[Dividend] = []
    for group in _groups(cells, _DIVIDEND_CELLS):
        if len(group) < _DIVIDEND_CELLS:
            continue
        dividends.append(
            Dividend(
                date=_at(group, 0) or "",
                shares_dividend=_number(_at(group, 1)),
                shares_into=_number(_at(group, 2)),
                money=_number(_at(group, 3)),
                date_dividend=_at(group, 5) or "",
                date_record=_at(group, 6) or "",
            )
        )
    return dividends


def parse_presses(html: str, base_url: str) -> List[Press]:
    """Bulletins listed as ``date&nbsp;<a href>title</a><br>`` inside ``div.datelist ul``."""
    ul = _soup(html).select_one("div.datelist ul")
    if ul is None:
        return []

    presses: List[Press] = []
    for a in ul.find_all("a", href=True):
        date = a.previous_sibling
        presses.append(
            Press(
                date=str(date).strip() if isinstance(date, str) else "",
                title=_text(a),
                url=urljoin(base_url, a["href"]),
            )
        )
    return presses
