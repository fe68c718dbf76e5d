"""
analytics — Business logic for portfolio valuation.

Modules
-------
    analytics.valuation   Join holdings with quotes; sector and portfolio totals.
"""
