"""
Random identifiers for wallets and transactions

None of these are derived from keys; they are opaque display strings.
"""
import re
import secrets

_WHITESPACE = re.compile(r"\s+")
_TX_ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


def generate_wallet_address() -> str:
    """0x-prefixed 40 hex character address"""
    return "0x" + secrets.token_hex(20)


def generate_transaction_hash() -> str:
    """0x-prefixed 64 hex character hash"""
    return "0x" + secrets.token_hex(32)


def generate_transaction_id(length: int = 8) -> str:
    return "".join(secrets.choice(_TX_ID_ALPHABET) for _ in range(length))


def normalize_seed_phrase(seed_phrase: str) -> str:
    """Lower-case, trimmed, single-spaced"""
    return _WHITESPACE.sub(" ", seed_phrase.strip().lower())
