import os
from functools import lru_cache

from pydantic import BaseModel


class Settings(BaseModel):
    QUOTE_HQ_URL: str
    QUOTE_WS_URL: str
    QUOTE_SUGGEST_URL: str
    QUOTE_PORTAL: str
    QUOTE_CORP_URL: str
    QUOTE_FINANCE_URL: str
    QUOTE_PING_INTERVAL_SEC: float
    QUOTE_HTTP_TIMEOUT_SEC: float
    QUOTE_COLOR: bool

    @classmethod
    def from_env(cls) -> "Settings":
        return cls.model_validate(
            {
                "QUOTE_HQ_URL": os.getenv("QUOTE_HQ_URL", "https://hq.sinajs.cn"),
                "QUOTE_WS_URL": os.getenv("QUOTE_WS_URL", "wss://hq.sinajs.cn/wskt"),
                "QUOTE_SUGGEST_URL": os.getenv("QUOTE_SUGGEST_URL", "https://suggest3.sinajs.cn/suggest"),
                "QUOTE_PORTAL": os.getenv("QUOTE_PORTAL", "https://finance.sina.com.cn"),
                "QUOTE_CORP_URL": os.getenv("QUOTE_CORP_URL", "https://vip.stock.finance.sina.com.cn/corp/go.php"),
                "QUOTE_FINANCE_URL": os.getenv("QUOTE_FINANCE_URL", "https://money.finance.sina.com.cn/corp/go.php"),
                "QUOTE_PING_INTERVAL_SEC": os.getenv("QUOTE_PING_INTERVAL_SEC", "60"),
                "QUOTE_HTTP_TIMEOUT_SEC": os.getenv("QUOTE_HTTP_TIMEOUT_SEC", "10"),
                "QUOTE_COLOR": os.getenv("QUOTE_COLOR", "true"),
            }
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
