# sillydebates/server/auth.py
import hmac
import jwt
import aiohttp
import json
from aiohttp import web
from jose import jwt as jose_jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError
import logging
import re  # For path matching
from sillydebates import config
from sillydebates.database.database import create_item, get_items_by_filters
import sillydebates.database.models as db_models


logger = logging.getLogger(__name__)

ALGORITHMS = ["RS256"]

PUBLIC_PATHS = [
    re.compile(r"^/api/docs(/.*)?$"),
    re.compile(r"^/static(/.*)?$"),
]
# Readable without signing in; a valid token still identifies the caller.
OPTIONAL_AUTH_PATHS = [
    re.compile(r"^/api/debates(/.*)?$"),
    re.compile(r"^/api/leaderboard$"),
]
CRON_PATHS = [re.compile(r"^/api/cron/.+$")]

jwks_cache = None


async def get_jwks():
    global jwks_cache
    if jwks_cache:
        return jwks_cache

    if not config.AUTH0_DOMAIN:
        logger.error("AUTH0_DOMAIN not set for JWKS fetching.")
        raise web.HTTPInternalServerError(
            text=json.dumps({"error": "Auth configuration error (domain)."}),
            content_type="application/json",
        )

    jwks_url = f"https://{config.AUTH0_DOMAIN}/.well-known/jwks.json"
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(jwks_url) as resp:
                resp.raise_for_status()
                jwks_data = await resp.json()
                jwks_cache = jwks_data
                logger.info("JWKS fetched and cached successfully.")
                return jwks_data
    except aiohttp.ClientError as e:
        logger.error(f"Failed to fetch JWKS: {e}")
        raise web.HTTPInternalServerError(
            text=json.dumps({"error": f"Could not fetch JWKS: {e}"}),
            content_type="application/json",
        )


class AuthError(Exception):
    def __init__(self, error, status_code):
        self.error = error
        self.status_code = status_code


async def verify_jwt(token: str) -> dict:
    if not config.AUTH0_DOMAIN or not config.AUTH0_API_AUDIENCE:
        logger.error("Auth0 domain or API audience not configured on backend.")
        raise AuthError(
            {
                "code": "config_error",
                "description": "Authentication service not configured.",
            },
            500,
        )

    try:
        jwks = await get_jwks()
        unverified_header = jwt.get_unverified_header(token)
    except jwt.PyJWTError as e:
        logger.warning(f"JWT Error (unverified header): {e}")
        raise AuthError(
            {
                "code": "invalid_header",
                "description": "Unable to parse authentication token.",
            },
            401,
        )

    rsa_key = {}
    for key in jwks["keys"]:
        if key["kid"] == unverified_header.get("kid"):
            rsa_key = {
                "kty": key["kty"],
                "kid": key["kid"],
                "use": key["use"],
                "n": key["n"],
                "e": key["e"],
            }
            break

    if not rsa_key:
        logger.warning("RSA key not found in JWKS for the given KID.")
        raise AuthError(
            {"code": "invalid_header", "description": "Unable to find appropriate key"},
            401,
        )

    try:
        return jose_jwt.decode(
            token,
            rsa_key,
            algorithms=ALGORITHMS,
            audience=config.AUTH0_API_AUDIENCE,
            issuer=f"https://{config.AUTH0_DOMAIN}/",
        )
    except ExpiredSignatureError:
        logger.warning("Token is expired.")
        raise AuthError(
            {"code": "token_expired", "description": "Token is expired."}, 401
        )
    except JWTClaimsError as e:
        logger.warning(f"Invalid token claims: {e}")
        raise AuthError(
            {"code": "invalid_claims", "description": "Incorrect audience or issuer."},
            401,
        )
    except JWTError as e:
        logger.error(f"Error decoding/validating token with jose: {type(e).__name__} - {e}")
        raise AuthError(
            {
                "code": "invalid_token",
                "description": "Unable to validate authentication token.",
            },
            401,
        )


def bearer_token(request: web.Request):
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise AuthError(
            {
                "code": "authorization_header_missing",
                "description": "Authorization header is expected.",
            },
            401,
        )
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthError(
            {
                "code": "invalid_header",
                "description": "Authorization header must be 'Bearer token'.",
            },
            401,
        )
    return parts[1]


async def resolve_user(session_factory, payload: dict) -> int:
    """Map the identity provider's subject to a local user id, creating the
    user on first sight."""
    auth_id = payload.get("sub")
    if not auth_id:
        raise AuthError(
            {"code": "invalid_token", "description": "Token payload is missing 'sub'."},
            401,
        )
    async with session_factory() as session:
        users = await get_items_by_filters(session, db_models.User, auth_id=auth_id)
        if users:
            return users[0].id
        user = await create_item(
            session, {"auth_id": auth_id, "name": payload.get("name")}, db_models.User
        )
    if not user:
        # Most likely a concurrent first request created it.
        async with session_factory() as session:
            users = await get_items_by_filters(session, db_models.User, auth_id=auth_id)
        if not users:
            raise AuthError(
                {"code": "internal_error", "description": "Failed to create user."}, 500
            )
        return users[0].id
    logger.info(f"Created user {user.id} for {auth_id}")
    return user.id


async def authenticate(request: web.Request) -> int:
    token = bearer_token(request)
    payload = await verify_jwt(token)
    user_id = await resolve_user(request.app["session_factory"], payload)
    request["user"] = payload
    request["user_id"] = user_id
    logger.debug(f"User {payload.get('sub')} authenticated for {request.path}")
    return user_id


def check_cron_secret(request: web.Request):
    secret = request.app["cron_secret"]
    if not secret:
        return
    token = bearer_token(request)
    if not hmac.compare_digest(token, secret):
        raise AuthError({"code": "unauthorized", "description": "Unauthorized"}, 401)


@web.middleware
async def auth_middleware(request: web.Request, handler):
    request["user_id"] = None

    # Allow OPTIONS requests to pass through for CORS preflight
    if request.method in ("OPTIONS", "HEAD"):
        return await handler(request)

    if any(pattern.match(request.path) for pattern in PUBLIC_PATHS):
        return await handler(request)

    try:
        if any(pattern.match(request.path) for pattern in CRON_PATHS):
            check_cron_secret(request)
        elif any(pattern.match(request.path) for pattern in OPTIONAL_AUTH_PATHS):
            if request.headers.get("Authorization"):
                try:
                    await authenticate(request)
                except AuthError as e:
                    logger.info(
                        f"Ignoring invalid credentials on public path {request.path}: {e.error.get('code')}"
                    )
        else:
            await authenticate(request)
    except AuthError as e:
        logger.warning(
            f"AuthError for {request.path}: Code: {e.error.get('code')}, Desc: {e.error.get('description')}"
        )
        return web.json_response(e.error, status=e.status_code)
    except web.HTTPException as e_http:
        logger.error(f"HTTPException during auth for {request.path}: {e_http.reason}")
        raise

    return await handler(request)
