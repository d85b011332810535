import logging

import aiohttp_cors
from aiohttp import web
from aiohttp_apispec import setup_aiohttp_apispec, validation_middleware

from sillydebates import config
from sillydebates.database.database import create_engine, create_session_factory
from sillydebates.lifecycle.manager import DebateLifecycleManager
from sillydebates.services.ai import AIService
from sillydebates.services.archive import SpacesArchive
from sillydebates.voting.entries import EntryService
from sillydebates.voting.ledger import VotingLedger
from .auth import auth_middleware
from .middleware import error_middleware
from .routes import setup_routes

logger = logging.getLogger(__name__)


async def _dispose_engine(app: web.Application):
    await app["engine"].dispose()
    logger.info("Database engine disposed.")


async def create_app(
    session_factory=None,
    ai: AIService = None,
    archive: SpacesArchive = None,
    cron_secret: str = None,
    challenge_days: int = None,
) -> web.Application:
    """Build the application. Collaborators default to the environment
    configuration; tests pass their own."""
    app = web.Application(middlewares=[error_middleware, auth_middleware, validation_middleware])

    if session_factory is None:
        app["engine"] = create_engine()
        app.on_cleanup.append(_dispose_engine)
        session_factory = create_session_factory(app["engine"])
    app["session_factory"] = session_factory

    if ai is None:
        ai = AIService(
            config.GEMINI_API_KEY, config.GEMINI_MODEL_NAME, timeout=config.AI_TIMEOUT_SECONDS
        )
    app["ai"] = ai
    if archive is None:
        archive = SpacesArchive(
            config.SPACES_KEY, config.SPACES_SECRET, config.SPACES_BUCKET, config.SPACES_REGION
        )
    app["cron_secret"] = config.CRON_SECRET if cron_secret is None else cron_secret

    app["ledger"] = VotingLedger(session_factory)
    app["entries"] = EntryService(session_factory, app["ai"], max_length=config.MAX_ENTRY_LENGTH)
    app["lifecycle"] = DebateLifecycleManager(
        session_factory,
        app["ai"],
        archive,
        challenge_days=config.CHALLENGE_DAYS if challenge_days is None else challenge_days,
        archive_timeout=config.ARCHIVE_TIMEOUT_SECONDS,
    )

    setup_routes(app)
    logger.info("Routes have been set up.")
    cors = aiohttp_cors.setup(
        app,
        defaults={
            config.CLIENT_URL: aiohttp_cors.ResourceOptions(
                allow_credentials=True,
                expose_headers="*",
                allow_headers="*",
                allow_methods="*",
            )
        },
    )
    for route in list(app.router.routes()):
        cors.add(route)
    setup_aiohttp_apispec(app=app, title="Silly Debates API", version="v1")
    return app
