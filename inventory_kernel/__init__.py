"""
Inventory Kernel - lot-level inventory ledger.

An append-only inventory ledger with:
- Atomic posting of quantity changes with before/after snapshots
- Reversal of prior postings
- Per-item serialization of concurrent writers
- Denormalized audit mirroring for chemical items
"""

__version__ = "0.1.0"
