"""
CoinVault — Virtual-Currency Reward & Ledger Engine
====================================================
Issues rewards for watching content and viewing promotions, moves tips from
viewers to creators, pays creators out and splits ad revenue.  Every one of
those is a mutation of two per-account balances (vicoin and icoin) that stays
consistent under concurrent requests, is never replayed and respects daily
issuance caps and eligibility gates.

Package layout::

    coinvault/
    ├── config.py          # YAML → typed Python config
    ├── errors.py          # LedgerError taxonomy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # All ORM models (10 tables)
    ├── engine/
    │   ├── events.py      # RewardClaim dataclass + reward table
    │   └── reward.py      # Reward & revenue calculation pipeline
    ├── services/
    │   ├── ledger_service.py        # atomic_unit, atomic_adjust, atomic_transfer
    │   ├── daily_cap.py             # Per-account daily counters
    │   ├── reward_service.py        # IssueReward
    │   ├── tip_service.py           # TipCreator
    │   ├── payout_service.py        # RequestPayout + rail callbacks
    │   ├── revenue_service.py       # ShareAdRevenue
    │   ├── conversion_service.py    # Icoin → Vicoin
    │   ├── referral_service.py      # Referral codes
    │   └── notification_service.py  # Best-effort notifiers
    └── api/
        ├── main.py        # FastAPI app + LedgerError → HTTP mapping
        ├── deps.py        # JWT identity, engine/config/notifier deps
        └── routes/        # wallet, rewards, tips, payouts, revenue, referrals
"""

__version__ = "0.1.0"
