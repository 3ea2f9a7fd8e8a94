import os
import logging

from dotenv import load_dotenv

from access_lists import BotAllowList, CredentialStore, InvalidBotIdentity
from health import create_app
from liveness import LivenessService
from probe_client import TelegramProbeClient

load_dotenv()

# --- Configuration ---
API_ID = os.getenv("TELEPINGBOT_API_ID")
API_HASH = os.getenv("TELEPINGBOT_API_HASH")
HOST = os.getenv("TELEPINGBOT_HOST", "0.0.0.0")
PORT = os.getenv("TELEPINGBOT_PORT", "8080")
BOTS_FILE = os.getenv("TELEPINGBOT_BOTS_FILE", "bots.txt")
TOKENS_FILE = os.getenv("TELEPINGBOT_TOKENS_FILE", "tokens.txt")
SESSION = os.getenv("TELEPINGBOT_SESSION", "telebotping")
REPLY_TIMEOUT = os.getenv("TELEPINGBOT_REPLY_TIMEOUT", "2")
PROBE_TIMEOUT = os.getenv("TELEPINGBOT_PROBE_TIMEOUT", "15")

# --- Logging Setup ---
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.INFO
)
logger = logging.getLogger(__name__)


def _number(name: str, value: str, cast):
    try:
        return cast(value)
    except (TypeError, ValueError):
        logger.critical(f"Invalid value for `{name}`: {value!r} must be a number. Exiting.")
        exit(1)


# --- Main Application Setup ---
def main() -> None:
    """Start the API."""
    logger.info("Starting the API")
    if not API_HASH:
        logger.critical("TELEPINGBOT_API_HASH environment variable not set. Exiting.")
        exit(1)
    if not API_ID:
        logger.critical("TELEPINGBOT_API_ID environment variable not set. Exiting.")
        exit(1)

    api_id = _number("TELEPINGBOT_API_ID", API_ID, int)
    port = _number("TELEPINGBOT_PORT", PORT, int)
    reply_timeout = _number("TELEPINGBOT_REPLY_TIMEOUT", REPLY_TIMEOUT, float)
    probe_timeout = _number("TELEPINGBOT_PROBE_TIMEOUT", PROBE_TIMEOUT, float)

    try:
        allow_list = BotAllowList.from_file(BOTS_FILE)
        credentials = CredentialStore.from_file(TOKENS_FILE)
    except InvalidBotIdentity as e:
        logger.critical(f"{e}. Exiting.")
        exit(1)
    except OSError as e:
        logger.critical(f"Could not read configuration file: {e}")
        exit(1)

    probe_client = TelegramProbeClient(
        api_id, API_HASH, session=SESSION, reply_timeout=reply_timeout, probe_timeout=probe_timeout
    )
    try:
        probe_client.start()
    except Exception as e:
        logger.critical(f"Could not connect to Telegram: {e}")
        probe_client.stop()
        exit(1)

    service = LivenessService(credentials, allow_list, probe_client)
    app = create_app(service)
    try:
        logger.info(f"API is listening on {HOST}:{port}")
        app.run(host=HOST, port=port, threaded=True)
    finally:
        probe_client.stop()


if __name__ == "__main__":
    main()
