import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_DB = int(os.getenv("REDIS_DB", 0))

# "redis" or "memory"
CHAT_BACKEND = os.getenv("CHAT_BACKEND", "redis")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))
USE_HTTPS = os.getenv("USE_HTTPS", "false").lower() == "true"
SSL_KEY = os.getenv("SSL_KEY", None)
SSL_CERT = os.getenv("SSL_CERT", None)
SSL_CA = os.getenv("SSL_CA", None)

OFFENSIVE_WORDS_FILE = os.getenv(
    "OFFENSIVE_WORDS_FILE",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "offensive_words.json"),
)
STATIC_DIR = os.getenv("STATIC_DIR", "public")

BLOCK_THRESHOLD = int(os.getenv("BLOCK_THRESHOLD", 3))
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", 50))
