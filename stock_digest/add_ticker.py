"""
Simple script to add a ticker to a user's watchlist in Supabase.

Usage:
    stock-digest-add-ticker <user-id>
"""

import sys

from pydantic import ValidationError as ModelValidationError

from stock_digest.config import load_settings
from stock_digest.errors import StockDigestError
from stock_digest.models import ProfileUpdate, UserProfile, normalize_ticker
from stock_digest.store import ProfileStore


def add_ticker(store: ProfileStore, user_id: str, raw_ticker: str) -> UserProfile:
    """Append ``raw_ticker`` to the user's watchlist and save the profile."""
    ticker = normalize_ticker(raw_ticker)
    profile = store.get_profile(user_id) or UserProfile(id=user_id)
    if ticker in profile.tickers:
        return profile
    update = ProfileUpdate(tickers=profile.tickers + [ticker])
    return store.upsert_profile(update.apply_to(profile))


def main() -> int:
    """Prompt user for ticker and add it to the watchlist."""
    if len(sys.argv) != 2:
        print("Usage: stock-digest-add-ticker <user-id>")
        return 2
    user_id = sys.argv[1]

    try:
        settings = load_settings()
    except RuntimeError as exc:
        print(f"Error: {exc}")
        return 1

    store = ProfileStore.from_settings(settings)

    # Prompt user for ticker
    raw_ticker = input("Enter ticker symbol to add to watchlist: ")

    try:
        profile = add_ticker(store, user_id, raw_ticker)
    except (StockDigestError, ModelValidationError) as exc:
        print(f"Error adding ticker to watchlist: {exc}")
        return 1

    print(f"Watchlist for {user_id}: {', '.join(profile.tickers)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
