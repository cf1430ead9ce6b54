"""
certsync configuration constants.

Constants are organized into:
- NORMATIVE: Fixed behavior; changing these changes classification/matching
  results for existing ledger objects and cached content
- OPERATIONAL: Deployment-specific settings (env vars)
"""

import os


def _env_list(name: str, default: str) -> tuple[str, ...]:
    """Parse a comma-separated environment variable into a tuple."""
    raw = os.getenv(name, default)
    return tuple(part.strip().rstrip("/") for part in raw.split(",") if part.strip())


# =============================================================================
# NORMATIVE CONSTANTS
# =============================================================================

# Magic prefix identifying a PDF document
PDF_SIGNATURE: bytes = b"%PDF"

# Bodies larger than this (with no usable type information) default to "pdf"
PDF_SIZE_THRESHOLD_BYTES: int = 20_000

# Substring tier only applies when both normalized titles are longer than this
SUBSTRING_MATCH_MIN_LENGTH: int = 10

# Key under which the hidden credential ids are persisted (JSON array)
HIDDEN_SET_KEY: str = "suivitae-hidden-certificates"

# Score recorded on newly issued credentials
DEFAULT_ISSUE_SCORE: int = 100

# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

# Ledger full node (JSON-RPC 2.0)
LEDGER_RPC_URL: str = os.getenv(
    "CERTSYNC_LEDGER_RPC_URL", "https://fullnode.testnet.sui.io:443"
)
LEDGER_NETWORK: str = os.getenv("CERTSYNC_LEDGER_NETWORK", "testnet")
PACKAGE_ID: str = os.getenv(
    "CERTSYNC_PACKAGE_ID",
    "0x451fcbe7c9d77678bfcebb44498d84505a122fec34d43b93fb734c5de216871d",
)
MODULE_NAME: str = os.getenv("CERTSYNC_MODULE_NAME", "diploma")
CREDENTIAL_STRUCT_TYPE: str = f"{PACKAGE_ID}::{MODULE_NAME}::Diploma"

LEDGER_TIMEOUT_SECONDS: float = float(os.getenv("CERTSYNC_LEDGER_TIMEOUT", "10.0"))
LEDGER_PAGE_LIMIT: int = int(os.getenv("CERTSYNC_LEDGER_PAGE_LIMIT", "50"))
LEDGER_MAX_PAGES: int = int(os.getenv("CERTSYNC_LEDGER_MAX_PAGES", "20"))

# Overall bound on the transaction-id fan-out of one reconciliation pass
TX_LOOKUP_TIMEOUT_SECONDS: float = float(os.getenv("CERTSYNC_TX_LOOKUP_TIMEOUT", "15.0"))

# Delay before re-verifying a freshly minted credential (ledger indexing lag)
MINT_VERIFY_DELAY_SECONDS: float = float(os.getenv("CERTSYNC_MINT_VERIFY_DELAY", "2.0"))

# Blob store publishers, tried in order (primary first)
BLOB_PUBLISHER_URLS: tuple[str, ...] = _env_list(
    "CERTSYNC_BLOB_PUBLISHERS",
    "http://127.0.0.1:8080/walrus-publisher,https://publisher.walrus-testnet.walrus.space",
)
BLOB_AGGREGATOR_URL: str = os.getenv(
    "CERTSYNC_BLOB_AGGREGATOR", "https://aggregator.walrus-testnet.walrus.space"
).rstrip("/")
BLOB_STORE_EPOCHS: int = int(os.getenv("CERTSYNC_BLOB_EPOCHS", "5"))
BLOB_UPLOAD_TIMEOUT_SECONDS: float = float(os.getenv("CERTSYNC_BLOB_UPLOAD_TIMEOUT", "60.0"))
BLOB_DOWNLOAD_TIMEOUT_SECONDS: float = float(os.getenv("CERTSYNC_BLOB_DOWNLOAD_TIMEOUT", "30.0"))

# Local persistence (blob cache records, hidden set)
DATABASE_URL: str = os.getenv("CERTSYNC_DATABASE_URL", "sqlite:///./data/certsync.db")

# Local blob cache size bound; 0 disables size-based eviction
BLOB_CACHE_MAX_BYTES: int = int(os.getenv("CERTSYNC_BLOB_CACHE_MAX_BYTES", str(100 * 1024 * 1024)))
