"""Ledger APIs: credit lifecycle, emission balances, audit replay."""

from .engine import (
    Credit,
    CreditDetails,
    record_emission,
    mint_credit,
    offset_emissions,
    set_token_uri,
    get_credit,
    get_credit_details,
    get_company_tokens,
    get_emissions,
    token_uri,
    owner_of,
    credit_count,
    total_supply,
    list_events,
)
from .events import LedgerEvent
from .replay import ReplayResult, verify_hash_chain, replay_ledger

__all__ = [
    "Credit",
    "CreditDetails",
    "LedgerEvent",
    "record_emission",
    "mint_credit",
    "offset_emissions",
    "set_token_uri",
    "get_credit",
    "get_credit_details",
    "get_company_tokens",
    "get_emissions",
    "token_uri",
    "owner_of",
    "credit_count",
    "total_supply",
    "list_events",
    "ReplayResult",
    "verify_hash_chain",
    "replay_ledger",
]
