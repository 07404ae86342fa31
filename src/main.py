"""Main entry point for the habit quest API server"""
import logging
import uvicorn
from src.config import validate_config, API_HOST, API_PORT, LOG_LEVEL, STORE_BACKEND

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Main application entry point"""
    # Validate configuration
    logger.info("Validating configuration...")
    validate_config()

    logger.info(f"Starting API server on {API_HOST}:{API_PORT} ({STORE_BACKEND} backend)")
    uvicorn.run(
        "src.api.server:app",
        host=API_HOST,
        port=API_PORT,
        log_level=LOG_LEVEL.lower(),
    )
    logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
