from __future__ import annotations


LOGGER_NAME = "onesec.bridge"

# Estimates used for plan ETA aggregation only.
ICP_CALL_DURATION_MS = 5_000
EVM_CALL_DURATION_MS = 5_000

INITIAL_POLL_DELAY_MS = 1_000
MAX_POLL_DELAY_MS = 10_000
BACKOFF_FLOOR_MS = 10
BACKOFF_MULTIPLIER = 1.2

CONFIRM_BLOCKS_SLEEP_MS = 1_000

DEFAULT_RECEIPT_TIMEOUT = 120
DEFAULT_GAS_FALLBACK = 1_200_000

PRINCIPAL_MAX_LENGTH = 29
SUBACCOUNT_LENGTH = 32
ACCOUNT_WORD_LENGTH = 32
ICRC_ACCOUNT_TAG = 0

EVM_TX_EXPLORER_TEMPLATES = {
    "Base": "https://basescan.org/tx/{tx_hash}",
    "Arbitrum": "https://arbiscan.io/tx/{tx_hash}",
    "Ethereum": "https://etherscan.io/tx/{tx_hash}",
}


__all__ = [
    "LOGGER_NAME",
    "ICP_CALL_DURATION_MS",
    "EVM_CALL_DURATION_MS",
    "INITIAL_POLL_DELAY_MS",
    "MAX_POLL_DELAY_MS",
    "BACKOFF_FLOOR_MS",
    "BACKOFF_MULTIPLIER",
    "CONFIRM_BLOCKS_SLEEP_MS",
    "DEFAULT_RECEIPT_TIMEOUT",
    "DEFAULT_GAS_FALLBACK",
    "PRINCIPAL_MAX_LENGTH",
    "SUBACCOUNT_LENGTH",
    "ACCOUNT_WORD_LENGTH",
    "ICRC_ACCOUNT_TAG",
    "EVM_TX_EXPLORER_TEMPLATES",
]
