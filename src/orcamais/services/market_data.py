import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, List, Optional

import requests

from orcamais.domain.errors import OrcaMaisError
from orcamais.domain.models import to_decimal

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10 # seconds


class MarketDataError(OrcaMaisError):
    """Raised when quotes cannot be fetched or parsed."""
    pass


@dataclass(frozen=True)
class Quote:
    """Latest quote of a listed stock"""
    stock: str
    name: str
    close: Decimal
    logo: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Quote":
        return cls(
            stock=data["stock"],
            name=data.get("name") or data["stock"],
            close=to_decimal(data["close"]),
            logo=data.get("logo") or "",
        )


class MarketDataClient:
    """
    Client for the public quote list (brapi-compatible API).

    The full list is cached in memory for `cache_ttl` seconds, so
    repeated searches within that window never hit the network.
    """

    def __init__(
        self,
        base_url: str = "https://brapi.dev/api",
        token: Optional[str] = None,
        cache_ttl: int = 3600,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.cache_ttl = cache_ttl
        self.session = session or requests.Session()
        self._clock = clock
        self._cache: Optional[List[Quote]] = None
        self._cached_at = 0.0

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _cache_valid(self) -> bool:
        return self._cache is not None and self._clock() - self._cached_at < self.cache_ttl

    def list_quotes(self, force_refresh: bool = False) -> List[Quote]:
        """
        All listed quotes.

        Raises:
            MarketDataError: Network failure, HTTP error or unexpected payload
        """
        if not force_refresh and self._cache_valid():
            return self._cache

        url = f"{self.base_url}/quote/list"
        try:
            resp = self.session.get(url, headers=self._get_headers(), timeout=DEFAULT_TIMEOUT)
            resp.raise_for_status()
            payload = resp.json()
        except requests.exceptions.RequestException as e:
            logger.error("Quote list request failed: %s", e)
            raise MarketDataError(f"Não foi possível carregar as cotações: {e}") from e
        except ValueError as e:
            raise MarketDataError("Resposta inválida do serviço de cotações") from e

        stocks = payload.get("stocks") if isinstance(payload, dict) else None
        if stocks is None:
            raise MarketDataError("Resposta inválida do serviço de cotações")

        quotes = []
        for item in stocks:
            try:
                quotes.append(Quote.from_dict(item))
            except (KeyError, ValueError):
                logger.debug("Skipping malformed quote entry: %r", item)

        self._cache = quotes
        self._cached_at = self._clock()
        logger.info("Loaded %d quotes", len(quotes))
        return quotes

    def get_quote(self, stock_code: str) -> Optional[Quote]:
        code = stock_code.upper()
        for quote in self.list_quotes():
            if quote.stock.upper() == code:
                return quote
        return None

    def prices(self) -> dict:
        """Closing price by stock code"""
        return {quote.stock: quote.close for quote in self.list_quotes()}
