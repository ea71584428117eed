"""System accounts and account-level limits."""

from src.cm_common.money import naira

# Receives the platform share of every completed order. Seeded by migration 003.
PLATFORM_ACCOUNT_ID = "PLATFORM_FEE"

MIN_WITHDRAWAL = naira(1000)
