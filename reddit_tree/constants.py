"""
Constants and configuration values for Reddit comment tree fetching.
"""

# Reddit API Endpoints
REDDIT_OAUTH_BASE = "https://oauth.reddit.com"
REDDIT_TOKEN_URL = "https://ssl.reddit.com/api/v1/access_token"

# reddit requires a unique User-Agent header (https://github.com/reddit/reddit/wiki/API)
DEFAULT_USER_AGENT = "reddit-tree comment tree loader"
DEFAULT_SUBREDDIT = "iAMA"

# Continuation Batching
MAX_BATCH = 20  # Hard per-request cap of /api/morechildren

# Concurrency
QUEUE_CONCURRENCY = 1  # reddit forbids concurrent morechildren calls per thread

# HTTP Timeouts
HTTP_TIMEOUT = 15.0
HTTP_CONNECT_TIMEOUT = 10.0

# Thread List
HOT_THREAD_COUNT = 10

# Rendering
RENDER_BODY_MAX_CHARS = 100

# Thing Kinds
KIND_COMMENT = "t1"
KIND_ARTICLE = "t3"
KIND_MORE = "more"
KIND_LISTING = "Listing"
