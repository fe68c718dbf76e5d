"""
analytics/valuation.py
───────────────────────
Join holdings with live quotes and compute portfolio valuations.

Pure functions — no I/O.  The only input contract with the market data
layer is the list of :class:`~schemas.stock_data.StockQuote` objects, in
any order.

Per holding
-----------
investment, portfolio_percentage, present_value, gain_loss,
gain_loss_percentage (price-derived fields are ``None`` without a price)

Aggregates
----------
sector_summaries (first-seen sector order), portfolio totals.  A holding
without a price contributes 0 to present-value totals.
"""

import time
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from schemas.holdings import Holding
from schemas.portfolio import EnrichedHolding, PortfolioResponse, SectorSummary
from schemas.stock_data import StockQuote


def _pct(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def enrich_holding(
    holding: Holding,
    quote: Optional[StockQuote],
    total_investment: float,
) -> EnrichedHolding:
    """Compute the valuation row for a single holding."""
    investment = holding.purchase_price * holding.quantity
    price = quote.price if quote is not None else None

    present_value = price * holding.quantity if price is not None else None
    gain_loss = present_value - investment if present_value is not None else None
    gain_loss_pct = (
        _pct(gain_loss, investment) if gain_loss is not None and investment > 0 else None
    )

    return EnrichedHolding(
        id=holding.id,
        stock_name=holding.stock_name,
        stock_symbol=holding.stock_symbol,
        exchange=holding.exchange,
        sector=holding.sector,
        purchase_price=holding.purchase_price,
        quantity=holding.quantity,
        investment=investment,
        portfolio_percentage=_pct(investment, total_investment),
        price=price,
        present_value=present_value,
        gain_loss=gain_loss,
        gain_loss_percentage=gain_loss_pct,
        pe_ratio=quote.pe_ratio if quote is not None else None,
        latest_earnings=quote.latest_earnings if quote is not None else None,
        quote_error=quote.error if quote is not None else None,
    )


def sector_summaries(holdings: Sequence[EnrichedHolding]) -> List[SectorSummary]:
    """Group enriched holdings by sector, keeping first-seen sector order."""
    if not holdings:
        return []

    frame = pd.DataFrame(
        {
            "sector": [h.sector for h in holdings],
            "investment": [h.investment for h in holdings],
            "present_value": pd.to_numeric(
                pd.Series([h.present_value for h in holdings], dtype="object"),
                errors="coerce",
            ).fillna(0.0),
        }
    )
    totals = frame.groupby("sector", sort=False)[["investment", "present_value"]].sum()

    summaries: List[SectorSummary] = []
    for sector, row in totals.iterrows():
        investment = float(row["investment"])
        present_value = float(row["present_value"])
        gain_loss = present_value - investment
        summaries.append(
            SectorSummary(
                sector=str(sector),
                total_investment=investment,
                total_present_value=present_value,
                gain_loss=gain_loss,
                gain_loss_percentage=_pct(gain_loss, investment),
                holdings=[h for h in holdings if h.sector == sector],
            )
        )
    return summaries


def build_portfolio(
    holdings: Sequence[Holding],
    quotes: Iterable[StockQuote],
) -> PortfolioResponse:
    """
    Assemble the complete portfolio view.

    Args:
        holdings: Positions from the holdings store.
        quotes:   Quotes from the coordinator (order irrelevant).

    Returns:
        :class:`PortfolioResponse` with rows, sector summaries and totals.
    """
    by_symbol: Dict[str, StockQuote] = {q.symbol: q for q in quotes}
    total_investment = sum(h.purchase_price * h.quantity for h in holdings)

    enriched = [
        enrich_holding(h, by_symbol.get(h.stock_symbol), total_investment)
        for h in holdings
    ]
    total_present_value = sum(h.present_value or 0.0 for h in enriched)
    total_gain_loss = total_present_value - total_investment

    return PortfolioResponse(
        holdings=enriched,
        sector_summaries=sector_summaries(enriched),
        total_investment=total_investment,
        total_present_value=total_present_value,
        total_gain_loss=total_gain_loss,
        total_gain_loss_percentage=_pct(total_gain_loss, total_investment),
        last_updated=int(time.time() * 1000),
    )
