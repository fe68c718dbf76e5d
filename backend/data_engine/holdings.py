"""
data_engine/holdings.py
────────────────────────
Holdings stores.

:class:`InMemoryHoldingsRepository` ships with a seed portfolio and is the
default.  :class:`SupabaseHoldingsRepository` persists to a Supabase table
and is selected automatically when Supabase credentials are configured
(see ``app.main.lifespan``).
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from supabase import Client

from schemas.holdings import Holding, HoldingCreate

logger = logging.getLogger(__name__)


SEED_HOLDINGS: List[Holding] = [
    Holding(
        id="1",
        stock_name="Infosys Limited",
        stock_symbol="INFY",
        exchange="NSE",
        sector="Information Technology",
        purchase_price=1200,
        quantity=10,
        created_at="2024-01-15",
    ),
    Holding(
        id="2",
        stock_name="Tata Consultancy Services",
        stock_symbol="TCS",
        exchange="NSE",
        sector="Information Technology",
        purchase_price=3500,
        quantity=5,
        created_at="2024-02-20",
    ),
    Holding(
        id="3",
        stock_name="Reliance Industries",
        stock_symbol="RELIANCE",
        exchange="NSE",
        sector="Energy",
        purchase_price=2500,
        quantity=8,
        created_at="2024-03-10",
    ),
    Holding(
        id="4",
        stock_name="HDFC Bank",
        stock_symbol="HDFCBANK",
        exchange="NSE",
        sector="Banking",
        purchase_price=1600,
        quantity=15,
        created_at="2024-04-05",
    ),
    Holding(
        id="5",
        stock_name="Hindustan Unilever",
        stock_symbol="HINDUNILVR",
        exchange="NSE",
        sector="FMCG",
        purchase_price=2200,
        quantity=6,
        created_at="2024-05-12",
    ),
]


class HoldingsRepository(ABC):
    """Storage interface for portfolio positions."""

    @abstractmethod
    def list(self) -> List[Holding]:
        """Return every holding."""

    @abstractmethod
    def get(self, holding_id: str) -> Optional[Holding]:
        """Return one holding, or ``None`` if unknown."""

    @abstractmethod
    def add(self, data: HoldingCreate) -> Holding:
        """Persist a new holding and return it with ``id`` and ``created_at``."""


class InMemoryHoldingsRepository(HoldingsRepository):
    """
    Process-local store.  Contents are lost on restart.

    Args:
        seed: Initial holdings; defaults to :data:`SEED_HOLDINGS`.
    """

    def __init__(self, seed: Optional[Iterable[Holding]] = None) -> None:
        self._holdings: List[Holding] = list(SEED_HOLDINGS if seed is None else seed)
        self._lock = threading.Lock()

    def list(self) -> List[Holding]:
        with self._lock:
            return list(self._holdings)

    def get(self, holding_id: str) -> Optional[Holding]:
        with self._lock:
            return next((h for h in self._holdings if h.id == holding_id), None)

    def add(self, data: HoldingCreate) -> Holding:
        holding = Holding(
            id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc).isoformat(),
            **data.model_dump(),
        )
        with self._lock:
            self._holdings.append(holding)
        return holding


class SupabaseHoldingsRepository(HoldingsRepository):
    """
    Holdings stored in a Supabase table.

    Args:
        db:    Supabase client (see :func:`core.database.get_supabase_client`).
        table: Table name; columns mirror :class:`~schemas.holdings.Holding`.

    Raises:
        Exception: Propagates Supabase errors after logging them.
    """

    def __init__(self, db: Client, table: str = "holdings") -> None:
        self._db = db
        self._table = table

    def list(self) -> List[Holding]:
        try:
            res = self._db.table(self._table).select("*").order("created_at").execute()
        except Exception:
            logger.exception("Could not list holdings from %s", self._table)
            raise
        return [Holding(**row) for row in res.data or []]

    def get(self, holding_id: str) -> Optional[Holding]:
        try:
            res = (
                self._db.table(self._table)
                .select("*")
                .eq("id", holding_id)
                .limit(1)
                .execute()
            )
        except Exception:
            logger.exception("Could not load holding %s", holding_id)
            raise
        return Holding(**res.data[0]) if res.data else None

    def add(self, data: HoldingCreate) -> Holding:
        try:
            res = self._db.table(self._table).insert(data.model_dump()).execute()
        except Exception:
            logger.exception("Could not insert holding %s", data.stock_symbol)
            raise
        row = res.data[0]
        logger.info("Created holding %s (id=%s)", data.stock_symbol, row.get("id"))
        return Holding(**row)
