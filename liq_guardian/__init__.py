"""Liquidation Guardian - Account Health Monitor

Watches a handful of Hyperliquid accounts, scores how close each one is to
liquidation and pings Telegram (and SMS for the worst tier) when health drops
through a threshold.

Alerts are gated so the same tier does not spam the channel.
"""

__version__ = "0.1.0"
