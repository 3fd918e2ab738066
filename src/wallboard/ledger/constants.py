# src/wallboard/ledger/constants.py
from __future__ import annotations

"""Protocol constants.

These values are part of the wire/fee contract and must not change:
- 1 display unit = 1e9 minor units (lamports)
- posting fee: 0.05 display units
- message body: 1..=500 UTF-8 bytes
"""

# Fee charged per post, routed to the wall owner.
MESSAGE_FEE: int = 50_000_000

# Headroom the poster must hold on top of MESSAGE_FEE so the ledger's own
# transaction fee cannot abort the instruction mid-transfer.
TX_FEE_BUFFER: int = 1_000_000

MAX_MESSAGE_LENGTH: int = 500

# Fee the runtime charges per transaction signature.
RUNTIME_TX_FEE: int = 5_000

# Domain separation tag for wall addresses.
WALL_SEED: bytes = b"wall"

# Wall record: owner(32) + wall_id(8) + bump(1), after an 8-byte discriminator.
WALL_RECORD_LEN: int = 32 + 8 + 1
DISCRIMINATOR_LEN: int = 8
WALL_ACCOUNT_SPACE: int = DISCRIMINATOR_LEN + WALL_RECORD_LEN

# Rent-exempt minimum: (account overhead + data) * lamports/byte-year * 2 years.
ACCOUNT_STORAGE_OVERHEAD: int = 128
LAMPORTS_PER_BYTE_YEAR: int = 3_480
RENT_EXEMPTION_YEARS: int = 2


def rent_exempt_minimum(data_len: int) -> int:
    return (ACCOUNT_STORAGE_OVERHEAD + int(data_len)) * LAMPORTS_PER_BYTE_YEAR * RENT_EXEMPTION_YEARS


WALL_RENT_LAMPORTS: int = rent_exempt_minimum(WALL_ACCOUNT_SPACE)

# Native value-transfer module; its id must be passed as the last account.
SYSTEM_PROGRAM_ID: str = "11111111111111111111111111111111"

# Account owner marker for plain user wallets.
SYSTEM_OWNER: str = "system"

# Default program id used to derive wall addresses.
DEFAULT_PROGRAM_ID: str = "11111111111111111111111111111111"
