"""Business identifiers.

Orders, messages and ledger rows use random UUIDs (string form). Gateway
transaction references follow the wallet providers' convention of a short
prefix plus a millisecond timestamp and a random suffix, e.g. "JC1760861109123042".
"""

import secrets
import time
import uuid


def new_id() -> str:
    """Random UUID4 as a string — primary key for orders, messages, payments."""
    return str(uuid.uuid4())


def gateway_reference(prefix: str) -> str:
    """Provider-facing transaction reference: prefix + epoch ms + 3 random digits."""
    return f"{prefix}{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"
