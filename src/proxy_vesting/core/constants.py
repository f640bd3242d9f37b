"""
Chain constants for the distribution target.

Values match the parachain runtime: 12 decimal native token, SS58 prefix
10041 and the treasury pallet id used to derive the treasury account.
"""

TOKEN_DECIMALS = 12
UNIT = 10**TOKEN_DECIMALS

SS58_FORMAT = 10041

DEFAULT_RPC_URL = "ws://127.0.0.1:9988"
DEFAULT_ACCOUNT_SECRET = "//Alice"

# Pallet ids are padded with NUL bytes to a 32 byte account id
TREASURY_PALLET_ID = "modlpy/trsry"
ACCOUNT_ID_LENGTH = 32

DEFAULT_PROXY_INDEX_START = 2000
DEFAULT_PROXY_TYPE = "Any"
DEFAULT_FUNDING_AMOUNT = 500

DEFAULT_UPGRADE_WAIT_BLOCKS = 3
DEFAULT_UPGRADE_TIMEOUT_SECONDS = 10 * 60
DEFAULT_UNCHECKED_WEIGHT = 100
VALIDATION_FUNCTION_APPLIED = ("ParachainSystem", "ValidationFunctionApplied")
