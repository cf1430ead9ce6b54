"""certsync: reconcile ledger-recorded credentials with a local catalog.

Subpackages:
- ledger: owned-object queries and tolerant decoding
- blobs: content-addressed store client, type sniffing, local cache
- reconcile: catalog, matcher, reconciliation sessions
- state: verification/minting state machines, hidden set
- persistence: SQLAlchemy engine and small key/value state
"""

__version__ = "0.1.0"
