from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class Profile(BaseModel):
    name: str = ""
    used_name: str = ""
    listing_date: str = ""
    listing_price: float = 0.0
    website: str = ""
    business_address: str = ""
    business: str = ""
    category: str = ""
    price: float = 0.0
    pb: float = 0.0
    market_cap: float = 0.0
    traded_market_cap: float = 0.0


class Financial(BaseModel):
    """One reporting period; rates compare against the same period a year earlier."""

    date: str = ""
    ps_net_assets: float = 0.0
    ps_capital_reserve: float = 0.0
    total_revenue: float = 0.0
    total_revenue_rate: float = 0.0
    net_profit: float = 0.0
    net_profit_rate: float = 0.0


class Holder(BaseModel):
    name: str = ""
    shares: float = 0.0
    percent: float = 0.0
    shares_type: str = ""


class Structure(BaseModel):
    date: str = ""
    holders_num: float = 0.0
    shares_avg: float = 0.0
    holders_ten: List[Holder] = Field(default_factory=list)


class Dividend(BaseModel):
    date: str = ""
    shares_dividend: float = 0.0
    shares_into: float = 0.0
    money: float = 0.0
    date_dividend: str = ""
    date_record: str = ""


class Press(BaseModel):
    date: str = ""
    title: str = ""
    url: str = ""


class Stock(BaseModel):
    symbol: str
    profile: Profile = Field(default_factory=Profile)
    financials: List[Financial] = Field(default_factory=list)
    structures: List[Structure] = Field(default_factory=list)
    dividends: List[Dividend] = Field(default_factory=list)
    presses: List[Press] = Field(default_factory=list)
