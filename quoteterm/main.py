from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from pydantic import ValidationError

from quoteterm.config.settings import Settings, get_settings
from quoteterm.errors import QuoteServiceError, StreamClosedError
from quoteterm.integrations.sina_rest import SinaRestClient
from quoteterm.integrations.sina_ws import SinaWsClient
from quoteterm.schemas.stock import Stock
from quoteterm.services.quote_render import LiveRenderer, format_amount, format_quote


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quoteterm", description="A-share / HK quotes in the terminal")
    parser.add_argument("-d", "--debug", action="store_true", help="trace requests and frames to stderr")
    sub = parser.add_subparsers(dest="cmd", required=True)

    search = sub.add_parser("search", aliases=["s"], help="find symbols by pinyin initials, code or name")
    search.add_argument("query")
    search.add_argument("-l", "--limit", type=int, default=10, help="max results")

    info = sub.add_parser("info", aliases=["i"], help="company profile, e.g. SH601318")
    info.add_argument("symbol")
    info.add_argument("-a", "--all", action="store_true", help="every section below")
    info.add_argument("-f", "--financials", action="store_true", help="latest four reporting periods")
    info.add_argument("-s", "--structure", action="store_true", help="shareholder structure")
    info.add_argument("-d", "--dividends", action="store_true", help="dividend history")
    info.add_argument("-p", "--presses", action="store_true", help="company bulletins")

    quote = sub.add_parser("quote", aliases=["q"], help="one-shot quotes, e.g. SH601318 HK00700")
    quote.add_argument("symbols", nargs="+")
    quote.add_argument("--no-color", action="store_true")

    watch = sub.add_parser("watch", aliases=["w"], help="live-updating quotes")
    watch.add_argument("symbols", nargs="+")
    watch.add_argument("--no-color", action="store_true")
    watch.add_argument("--reconnect", action="store_true", help="reconnect with backoff when the stream drops")
    return parser


def _normalize_symbols(raw: List[str]) -> List[str]:
    symbols: List[str] = []
    for item in raw:
        for value in item.split(","):
            value = value.strip().upper()
            if value and value not in symbols:
                symbols.append(value)
    return symbols


def _rest_client(settings: Settings, debug: bool) -> SinaRestClient:
    return SinaRestClient(
        hq_url=settings.QUOTE_HQ_URL,
        suggest_url=settings.QUOTE_SUGGEST_URL,
        portal=settings.QUOTE_PORTAL,
        corp_url=settings.QUOTE_CORP_URL,
        finance_url=settings.QUOTE_FINANCE_URL,
        timeout=settings.QUOTE_HTTP_TIMEOUT_SEC,
        debug=debug,
    )


def cmd_search(args: argparse.Namespace, settings: Settings) -> int:
    for item in _rest_client(settings, args.debug).search(args.query, limit=args.limit):
        print(f"{item.symbol:<10} {item.code:<8} {item.name}")
    return 0


def _print_stock(stock: Stock) -> None:
    p = stock.profile
    print(f"{p.name} ({stock.symbol})  {p.category}")
    print(f"  price {p.price:.2f}  pb {p.pb:.2f}  cap {format_amount(p.market_cap)}"
          f"  traded {format_amount(p.traded_market_cap)}")
    print(f"  listed {p.listing_date} at {p.listing_price:.2f}  formerly {p.used_name}")
    print(f"  {p.website}  {p.business_address}")
    if p.business:
        print(f"  {p.business}")

    if stock.financials:
        print("\nfinancials")
        for f in stock.financials:
            print(f"  {f.date}  revenue {format_amount(f.total_revenue)} {f.total_revenue_rate:+.2f}%"
                  f"  profit {format_amount(f.net_profit)} {f.net_profit_rate:+.2f}%"
                  f"  nav/share {f.ps_net_assets:.2f}  reserve/share {f.ps_capital_reserve:.2f}")

    if stock.structures:
        print("\nstructure")
        for s in stock.structures:
            print(f"  {s.date}  holders {s.holders_num:.0f}  avg shares {s.shares_avg:.0f}")
            for h in s.holders_ten:
                print(f"    {h.percent:6.2f}%  {format_amount(h.shares):>10}  {h.shares_type}  {h.name}")

    if stock.dividends:
        print("\ndividends")
        for d in stock.dividends:
            print(f"  {d.date}  bonus {d.shares_dividend:g}  transfer {d.shares_into:g}  cash {d.money:g}"
                  f"  ex {d.date_dividend}  record {d.date_record}")

    if stock.presses:
        print("\npresses")
        for item in stock.presses:
            print(f"  {item.date}  {item.title}  {item.url}")


def cmd_info(args: argparse.Namespace, settings: Settings) -> int:
    try:
        stock = _rest_client(settings, args.debug).stock(
            args.symbol,
            financials=args.all or args.financials,
            structures=args.all or args.structure,
            dividends=args.all or args.dividends,
            presses=args.all or args.presses,
        )
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    _print_stock(stock)
    return 0


def cmd_quote(args: argparse.Namespace, settings: Settings) -> int:
    color = settings.QUOTE_COLOR and not args.no_color
    quotes = _rest_client(settings, args.debug).get_quotes(_normalize_symbols(args.symbols))
    for quote in quotes:
        print(format_quote(quote, color=color))
    return 0


def cmd_watch(args: argparse.Namespace, settings: Settings) -> int:
    symbols = _normalize_symbols(args.symbols)
    renderer = LiveRenderer(
        color=settings.QUOTE_COLOR and not args.no_color,
        single=len(symbols) == 1,
    )
    client = SinaWsClient(
        on_quotes=renderer.render,
        ws_url=settings.QUOTE_WS_URL,
        origin=settings.QUOTE_PORTAL,
        ping_interval_sec=settings.QUOTE_PING_INTERVAL_SEC,
        debug=args.debug,
    )
    if args.reconnect:
        client.run_with_reconnect(symbols)
        return 0

    try:
        client.connect_and_stream(symbols)
    except StreamClosedError as exc:
        # live view ends quietly when the transport drops
        if args.debug:
            print(f"[WS][ws_closed] {exc}", file=sys.stderr, flush=True)
    return 0


_COMMANDS = {
    "search": cmd_search,
    "s": cmd_search,
    "info": cmd_info,
    "i": cmd_info,
    "quote": cmd_quote,
    "q": cmd_quote,
    "watch": cmd_watch,
    "w": cmd_watch,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
        return _COMMANDS[args.cmd](args, settings)
    except (QuoteServiceError, ValidationError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
