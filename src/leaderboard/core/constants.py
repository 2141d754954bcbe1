"""
Leaderboard Constants

Shared constants for the cache and the upstream collaborators.
"""

# =============================================================================
# Cache
# =============================================================================

# Every cache domain expires 24 hours after it was written
CACHE_TTL_MS = 24 * 60 * 60 * 1000

# Record bounds enforced before ranked users reach the store
MAX_ADDRESS_LENGTH = 100
MAX_USERNAME_LENGTH = 200
MAX_AVATAR_CID_LENGTH = 200

# Largest value a SQLite INTEGER column can store (signed 64-bit)
MAX_STORED_INTEGER = 2**63 - 1

# =============================================================================
# Upstream Endpoints
# =============================================================================

LAYER3_USERS_URL = "https://layer3.xyz/api/assignment/users"

ANKR_MULTICHAIN_URL = "https://rpc.ankr.com/multichain"

# Ankr page sizes
ANKR_BALANCE_PAGE_SIZE = 50
ANKR_NFT_PAGE_SIZE = 50

# =============================================================================
# Avatars
# =============================================================================

# 1x1 transparent PNG served when IPFS is mocked
MOCK_AVATAR_PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)
