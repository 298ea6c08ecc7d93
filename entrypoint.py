import uvicorn
import os
from logging_config import setup_logging

# Setup logging before importing app
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)

from constants import HOST, PORT, SSL_CA, SSL_CERT, SSL_KEY, USE_HTTPS
from logging_config import get_logger

logger = get_logger(__name__)


def main():
    ssl_options = {}
    if USE_HTTPS:
        if not SSL_KEY or not SSL_CERT:
            raise SystemExit("USE_HTTPS requires SSL_KEY and SSL_CERT")
        ssl_options = {"ssl_keyfile": SSL_KEY, "ssl_certfile": SSL_CERT}
        if SSL_CA:
            ssl_options["ssl_ca_certs"] = SSL_CA

    protocol = "https" if USE_HTTPS else "http"
    logger.info(f"Starting chat server on {protocol}://{HOST}:{PORT}")
    uvicorn.run("app:app", host=HOST, port=PORT, log_config=None, **ssl_options)


if __name__ == "__main__":
    main()
