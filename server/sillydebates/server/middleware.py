import logging

from aiohttp import web
from sqlalchemy.exc import SQLAlchemyError

from sillydebates.errors import DebateError

logger = logging.getLogger(__name__)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except DebateError as e:
        logger.info(f"{request.method} {request.path} -> {e.status_code} {e.code}: {e.message}")
        return web.json_response(e.to_dict(), status=e.status_code)
    except SQLAlchemyError as e:
        logger.error(f"Database error on {request.method} {request.path}: {type(e).__name__} - {e}")
        return web.json_response(
            {"error": "Database error", "code": "internal_error"}, status=500
        )
