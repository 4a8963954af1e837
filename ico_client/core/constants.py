# ico_client/core/constants.py

from solders.pubkey import Pubkey

# Seeds shared with the on-chain ICO program.
SALE_RECORD_SEED = b"data"

# Anchor account / instruction namespaces.
ACCOUNT_DISCRIMINATOR_NAMESPACE = "account"
INSTRUCTION_DISCRIMINATOR_NAMESPACE = "global"
SALE_RECORD_ACCOUNT_NAME = "Data"

# Solana-wide constants
LAMPORTS_PER_SOL = 1_000_000_000
DEFAULT_LAMPORTS_PER_TOKEN = 1_000_000  # 0.001 SOL
DEFAULT_MAX_USER_TOTAL_LIMIT = 2000
DEFAULT_TOKEN_DECIMALS = 9
DEFAULT_NETWORK_FEE_RESERVE_LAMPORTS = 5000

# PDA search bounds
MAX_SEEDS = 16
MAX_SEED_LEN = 32

SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
