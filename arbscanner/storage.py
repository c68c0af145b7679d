"""
Durable market store.

Persists market metadata and price snapshots so the scanner can fall back to
the last known prices when a platform's API is down. The CSV-backed store
keeps one row per (platform, external id) in ``markets.csv`` and appends
every observed price to ``snapshots.csv``.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from . import config
from .models import Market, utc_now
from .utils.helpers import parse_timestamp, to_float

logger = logging.getLogger(__name__)

MARKET_COLUMNS = [
    "internal_id", "platform", "external_id", "ticker", "title", "category",
    "end_date", "slug", "condition_id", "event_ticker", "url", "updated_at",
]
SNAPSHOT_COLUMNS = [
    "internal_id", "yes_price", "no_price", "yes_bid", "yes_ask", "no_bid",
    "no_ask", "volume", "liquidity", "captured_at", "source",
]

SnapshotRow = Tuple[int, Market]


class MarketStore:
    """Interface of the durable store consumed by the scanner."""

    def upsert_markets(self, markets: List[Market]) -> Dict[str, int]:
        """Insert or update markets; returns external id -> internal id."""
        raise NotImplementedError

    def insert_snapshots(self, rows: Iterable[SnapshotRow], source: str = "api") -> int:
        """Append price snapshots; returns the number of rows written."""
        raise NotImplementedError

    def get_markets_with_latest_snapshot(self, platform: str) -> List[Market]:
        """Stored markets of a platform priced at their most recent snapshot."""
        raise NotImplementedError


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _optional(value: str) -> Optional[str]:
    return value or None


class CsvMarketStore(MarketStore):
    """
    MarketStore backed by two CSV files.

    Writes arrive from executor threads, so every read-modify-write holds a
    lock.
    """

    def __init__(self, base_path: Path = config.STORE_DIR):
        self.base_path = Path(base_path)
        self.markets_path = self.base_path / "markets.csv"
        self.snapshots_path = self.base_path / "snapshots.csv"
        self._lock = threading.Lock()

    def _ensure_directory(self) -> None:
        self.base_path.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _read(path: Path, columns: List[str]) -> pd.DataFrame:
        if not path.exists():
            return pd.DataFrame(columns=columns)
        # Everything as text; empty cells stay "" instead of NaN
        return pd.read_csv(path, dtype=str, keep_default_na=False)

    @staticmethod
    def _market_row(internal_id: int, market: Market, updated_at: datetime) -> Dict[str, str]:
        return {
            "internal_id": str(internal_id),
            "platform": market.platform,
            "external_id": market.id,
            "ticker": market.ticker,
            "title": market.title,
            "category": _text(market.category),
            "end_date": _text(market.end_date),
            "slug": _text(market.slug),
            "condition_id": _text(market.condition_id),
            "event_ticker": _text(market.event_ticker),
            "url": _text(market.url),
            "updated_at": updated_at.isoformat(),
        }

    def upsert_markets(self, markets: List[Market]) -> Dict[str, int]:
        """
        Insert or update market metadata keyed on (platform, external id).

        Args:
            markets: Markets to write

        Returns:
            Mapping of external market id to internal store id
        """
        if not markets:
            return {}

        with self._lock:
            self._ensure_directory()
            existing = self._read(self.markets_path, MARKET_COLUMNS)

            ids: Dict[Tuple[str, str], int] = {
                (row.platform, row.external_id): int(row.internal_id)
                for row in existing.itertuples(index=False)
            }
            next_id = max(ids.values(), default=0) + 1

            now = utc_now()
            id_map: Dict[str, int] = {}
            rows = []
            for market in markets:
                key = (market.platform, market.id)
                if key not in ids:
                    ids[key] = next_id
                    next_id += 1
                id_map[market.id] = ids[key]
                rows.append(self._market_row(ids[key], market, now))

            updated = pd.concat(
                [existing, pd.DataFrame(rows, columns=MARKET_COLUMNS)],
                ignore_index=True,
            )
            updated = updated.drop_duplicates(subset=["platform", "external_id"], keep="last")
            updated.to_csv(self.markets_path, index=False, columns=MARKET_COLUMNS)

        logger.info(f"Upserted {len(id_map)} markets into {self.markets_path}")
        return id_map

    def insert_snapshots(self, rows: Iterable[SnapshotRow], source: str = "api") -> int:
        """
        Append one price snapshot per (internal id, market) row.

        Args:
            rows: Pairs of store id and the market whose prices to record
            source: Where the prices came from ("api", "cache", ...)

        Returns:
            Number of snapshots written
        """
        captured_at = utc_now().isoformat()
        records = [
            {
                "internal_id": str(internal_id),
                "yes_price": _text(market.yes_price),
                "no_price": _text(market.no_price),
                "yes_bid": _text(market.yes_bid),
                "yes_ask": _text(market.yes_ask),
                "no_bid": _text(market.no_bid),
                "no_ask": _text(market.no_ask),
                "volume": _text(market.volume),
                "liquidity": _text(market.liquidity),
                "captured_at": captured_at,
                "source": source,
            }
            for internal_id, market in rows
        ]
        if not records:
            return 0

        with self._lock:
            self._ensure_directory()
            df = pd.DataFrame(records, columns=SNAPSHOT_COLUMNS)
            df.to_csv(
                self.snapshots_path,
                mode="a",
                header=not self.snapshots_path.exists(),
                index=False,
            )

        logger.info(f"Saved {len(records)} snapshots: {self.snapshots_path}")
        return len(records)

    def get_markets_with_latest_snapshot(self, platform: str) -> List[Market]:
        """
        Load a platform's markets priced at their newest snapshot.

        Markets that never got a snapshot are skipped since they carry no
        prices.
        """
        with self._lock:
            markets = self._read(self.markets_path, MARKET_COLUMNS)
            snapshots = self._read(self.snapshots_path, SNAPSHOT_COLUMNS)

        markets = markets[markets["platform"] == platform]
        if markets.empty or snapshots.empty:
            logger.warning(f"No stored {platform} markets in {self.base_path}")
            return []

        snapshots = snapshots.assign(
            captured_ts=pd.to_datetime(snapshots["captured_at"], utc=True, format="ISO8601")
        )
        latest = (
            snapshots.sort_values("captured_ts", kind="stable")
            .groupby("internal_id", sort=False)
            .tail(1)
        )
        joined = markets.merge(latest, on="internal_id", how="inner")

        loaded = []
        for row in joined.to_dict("records"):
            try:
                loaded.append(self._row_to_market(row))
            except ValueError as e:
                logger.warning(f"Skipping stored market {row.get('external_id')}: {e}")

        logger.info(f"Loaded {len(loaded)} {platform} markets from {self.base_path}")
        return loaded

    @staticmethod
    def _row_to_market(row: Dict[str, str]) -> Market:
        yes_price = to_float(row["yes_price"])
        no_price = to_float(row["no_price"])
        if yes_price is None or no_price is None:
            raise ValueError("snapshot has no prices")

        return Market(
            platform=row["platform"],
            id=row["external_id"],
            ticker=row["ticker"],
            title=row["title"],
            category=_optional(row["category"]),
            end_date=parse_timestamp(row["end_date"]),
            yes_price=yes_price,
            no_price=no_price,
            yes_bid=to_float(row["yes_bid"]),
            yes_ask=to_float(row["yes_ask"]),
            no_bid=to_float(row["no_bid"]),
            no_ask=to_float(row["no_ask"]),
            volume=to_float(row["volume"]),
            liquidity=to_float(row["liquidity"]),
            last_updated=parse_timestamp(row["captured_at"]),
            slug=_optional(row["slug"]),
            condition_id=_optional(row["condition_id"]),
            event_ticker=_optional(row["event_ticker"]),
            url=_optional(row["url"]),
        )
