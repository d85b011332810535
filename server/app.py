import asyncio
from aiohttp import web
import logging
from sillydebates import config
from sillydebates.server.application import create_app

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


if __name__ == "__main__":
    loop = asyncio.new_event_loop()
    app_instance = loop.run_until_complete(create_app())
    logger.info(
        f"Starting Silly Debates backend on http://{config.SERVER_HOST}:{config.SERVER_PORT}"
    )
    web.run_app(app_instance, host=config.SERVER_HOST, port=config.SERVER_PORT, loop=loop)
