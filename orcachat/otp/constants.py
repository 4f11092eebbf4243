from orcachat.common.logging_setup import get_logger

logger = get_logger("orcachat.otp")

# fixed limits; deliberately not read from settings
WINDOW_MS = 15 * 60 * 1000          # sliding window for counting sends
MAX_SENDS = 5                       # sends per destination per window
BLOCK_MS = 15 * 60 * 1000           # block measured from the latest send once MAX_SENDS is reached
IP_MAX_SENDS = MAX_SENDS * 3        # sends per client address per window, across all destinations
CODE_TTL_MS = 5 * 60 * 1000

CODE_MIN = 100000
CODE_MAX = 999999
