"""Default values shared by the pipeline and its clients."""

DEFAULT_DEPOSIT_POLL_INTERVAL = 5.0
DEFAULT_BALANCE_POLL_INTERVAL = 60.0
DEFAULT_ORDER_MAX_ATTEMPTS = 30
DEFAULT_ORDER_POLL_INTERVAL = 10.0
DEFAULT_WITHDRAWAL_MAX_ATTEMPTS = 30
DEFAULT_WITHDRAWAL_POLL_INTERVAL = 10.0
DEFAULT_FILL_MAX_ATTEMPTS = 60
DEFAULT_FILL_POLL_INTERVAL = 10.0

# 1% of swap proceeds held back for fees and slippage
RESERVE_FACTOR = 0.99
# flat USDC fee charged by the exchange on withdrawal
EXCHANGE_WITHDRAWAL_FEE = 2.0

FIAT_ASSET = "ZGBP"
STABLECOIN_ASSET = "USDC"
SWAP_PAIR = "USDCGBP"
WITHDRAWAL_KEY = "echo_intermediary_op"

KRAKEN_API_URL = "https://api.kraken.com"
ACROSS_API_URL = "https://app.across.to/api"
ACROSS_INTEGRATOR_ID = "0xdead"

STATUS_SERVER_PORT = 3030
STATUS_SERVER_ORIGINS = ["http://localhost:5173"]
DEFAULT_STATUS_URL = "file://status.json"
