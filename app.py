import logging

from tracker.config import configure_logging, load_config
from tracker.web import create_app

logger = logging.getLogger(__name__)

config = load_config()
configure_logging(config.logging)
app = create_app(config)

if __name__ == "__main__":
    base = config.server.base_url
    logger.info("Server running on %s:%d", config.server.host, config.server.port)
    logger.info("Admin login: %s/api/admin/login", base)
    logger.info("Track:       %s/api/track/<trackingId>", base)
    app.run(host=config.server.host, port=config.server.port)
