import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_env_file() -> None:
    """Load variables from a local .env file without overriding the process env.

    WHAT:
        Reads backend/.env (or the nearest .env found by python-dotenv) into
        os.environ. Variables already exported keep their values.
    WHY:
        Import-time configuration (DATABASE_URL, TOKEN_ENCRYPTION_KEY) must
        work in local development without exporting every variable by hand.
    """
    loaded = load_dotenv(override=False)

    if loaded:
        logger.info("Loaded local .env file (existing variables were NOT overwritten)")
    else:
        logger.debug("No local .env file found or loaded")


def get_env_flag(name: str, default: bool = False) -> bool:
    """Interpret an environment variable as a boolean flag ("1", "true", "yes")."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}
