# constants.py
import logging

logger = logging.getLogger(__name__)

# Interaction limits
MAX_PAGINATION_HOPS = 3
MAX_LOAD_MORE_CLICKS = 5
MAX_READ_MORE_CLICKS = 3
MAX_EXPAND_CLICKS = 5
MAX_SCROLL_ATTEMPTS = 5

# Timing (milliseconds)
THROTTLE_MS = 1000
INTERACTION_TIMEOUT = 5000
NETWORK_TIMEOUT = 30000
SETTLE_CEILING_MS = 3000
READ_MORE_SETTLE_MS = 800
GO_BACK_TIMEOUT = 3000
SCROLL_SETTLE_MS = 1500
INITIAL_SETTLE_MS = 2000
LOGIN_SETTLE_MS = 1000
PROBE_TIMEOUT = 5000
FETCH_TIMEOUT = 10000

# Retry policy
MAX_ATTEMPTS = 3
BACKOFF_MS = 1000
MIN_SUCCESS_URLS = 1
STRICT_MIN_SUCCESS_URLS = 2
MAX_HEADLESS_BROWSERS = 3

# Feeds
FRESH_ONLY_DAYS = 365
MAX_FEED_ITEMS = 200
MAX_NESTED_SITEMAPS = 5
MAX_JSON_DEPTH = 20

DEFAULT_DESIRED_LINKS = 10

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1280, "height": 720}
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]

DEFAULT_USERNAME = "test_user"
DEFAULT_PASSWORD = "test_pass"
