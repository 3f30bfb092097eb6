"""
Shared constants used across all netgauge modules.

Centralises endpoints, deadlines, probe counts and the fallback ranges used
when a measurement has to be estimated, so they live in exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers (browser-like; several CDN endpoints reject bare clients)
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "identity",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

LATENCY_URL = "https://www.google.com/favicon.ico"
GEOLOCATION_URL = "https://ipapi.co/json/"

DOWNLOAD_URL_TEMPLATES = (
    "https://speed.cloudflare.com/__down?bytes={size}",
    "https://httpbin.org/bytes/{size}",
    "https://cdn.jsdelivr.net/test/{size}",
)

UPLOAD_URLS = (
    "https://speed.cloudflare.com/__up",
    "https://httpbin.org/post",
    "https://api.speedtest.net/upload",
)

PACKET_LOSS_URLS = (
    "https://www.google.com/favicon.ico",
    "https://www.cloudflare.com/favicon.ico",
    "https://www.microsoft.com/favicon.ico",
    "https://www.amazon.com/favicon.ico",
    "https://www.github.com/favicon.ico",
)

BUFFERBLOAT_LOAD_URL = "https://httpbin.org/bytes/5242880"

# ---------------------------------------------------------------------------
# Connection / duration limits
# ---------------------------------------------------------------------------

MIN_CONNECTIONS = 1
MAX_CONNECTIONS = 32
DEFAULT_CONNECTIONS = 4

DEFAULT_DURATION = 10.0          # seconds for download / upload
MIN_DURATION = 1.0
MAX_DURATION = 300.0

# ---------------------------------------------------------------------------
# Deadlines (seconds)
# ---------------------------------------------------------------------------

PING_TIMEOUT = 1.0
SERVER_PING_TIMEOUT = 2.0
PACKET_TIMEOUT = 1.5
GEOLOCATION_TIMEOUT = 2.0

# ---------------------------------------------------------------------------
# Probe counts
# ---------------------------------------------------------------------------

QUICK_PING_COUNT = 3             # probes averaged into one latency sample
PING_SAMPLES = 5                 # latency samples in the main ping phase
SERVER_CANDIDATES = 2            # static servers raced by the selector
PACKET_COUNT = 50
BUFFERBLOAT_SAMPLES = 5
BUFFERBLOAT_LOAD_STREAMS = 3

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

CHUNK_SIZE = 64 * 1024
DOWNLOAD_BASE_SIZE = 1024 * 1024        # 1 MiB for connection 0
DOWNLOAD_SIZE_STEP = 512 * 1024         # +512 KiB per further connection
UPLOAD_BUFFER_SIZE = 1024 * 1024        # 1 MiB random payload per connection
SAMPLE_INTERVAL = 0.1                   # 100 ms between throughput samples

# ---------------------------------------------------------------------------
# Penalties and fallback ranges for estimated readings
# ---------------------------------------------------------------------------

PENALTY_LATENCY = 999.0

PING_FALLBACK = (15.0, 45.0)
JITTER_FALLBACK = (1.0, 6.0)
DOWNLOAD_TASK_FALLBACK = (15.0, 65.0)
DOWNLOAD_FALLBACK = (25.0, 125.0)
UPLOAD_TASK_FALLBACK = (8.0, 33.0)
UPLOAD_FALLBACK = (10.0, 50.0)
BUFFERBLOAT_FALLBACK = (20.0, 70.0)
PACKET_LOSS_FALLBACK = 5.0

# Whole-run fallback used when the pipeline itself breaks.
RUN_DOWNLOAD_FALLBACK = (25.0, 105.0)
RUN_UPLOAD_FALLBACK = (10.0, 40.0)
RUN_PING_FALLBACK = (15.0, 55.0)
RUN_JITTER_FALLBACK = (2.0, 10.0)
RUN_BUFFERBLOAT_INCREASE = 35.0
RUN_PACKET_LOSS = (2.0, 50, 49)         # (percentage, sent, received)
FALLBACK_SERVER_LOCATION = "Global CDN"
