"""aiohttp binding for the vault.

Authentication stays outside: a middleware is expected to leave the
caller identity on the request under ``conf.VAULT_USER_KEY``. Listing
endpoints only ever return undecrypted views.
"""
import logging
from functools import wraps
from typing import Any, Awaitable, Callable

import orjson
from aiohttp import web
from pydantic import BaseModel, ValidationError

from .conf import (
    VAULT_USER_KEY,
    PASSWORD_MIN_LENGTH,
    PASSWORD_MAX_LENGTH,
    PASSWORD_DEFAULT_LENGTH,
)
from .vault.exceptions import CryptoFault, Forbidden, NotFound
from .vault.store import VaultStore

logger = logging.getLogger("navigator.vault")

CANNOT_OPEN = "This item could not be opened"
VAULT_STORE_KEY = web.AppKey("navigator_vault.store", VaultStore)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _encode(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, list):
        return [_encode(o) for o in obj]
    return obj


def json_response(data: Any, status: int = 200) -> web.Response:
    return web.Response(
        body=orjson.dumps(_encode(data)),
        status=status,
        content_type="application/json",
    )


def clamp_password_length(raw: Any) -> int:
    """Parse a requested length and clamp it into the accepted range."""
    try:
        length = int(raw)
    except (TypeError, ValueError):
        length = PASSWORD_DEFAULT_LENGTH
    return max(PASSWORD_MIN_LENGTH, min(PASSWORD_MAX_LENGTH, length))


def vault_view(handler: Handler) -> Handler:
    """Translate vault errors into HTTP responses."""
    @wraps(handler)
    async def _wrap(request: web.Request) -> web.StreamResponse:
        try:
            return await handler(request)
        except NotFound as err:
            return json_response({"error": str(err)}, status=404)
        except Forbidden as err:
            return json_response({"error": str(err)}, status=403)
        except CryptoFault:
            return json_response({"error": CANNOT_OPEN}, status=500)
        except ValidationError as err:
            return json_response(
                {"error": "Invalid request", "detail": err.errors(
                    include_url=False, include_context=False, include_input=False,
                )},
                status=400,
            )
        except ValueError as err:
            return json_response({"error": str(err)}, status=400)
    return _wrap


def _user_id(request: web.Request) -> str:
    user_id = request.get(VAULT_USER_KEY)
    if not user_id:
        raise web.HTTPUnauthorized(reason="Authentication required")
    return str(user_id)


def _store(request: web.Request) -> VaultStore:
    return request.app[VAULT_STORE_KEY]


async def _json_body(request: web.Request) -> Any:
    body = await request.read()
    try:
        return orjson.loads(body or b"{}")
    except orjson.JSONDecodeError:
        raise ValueError("Request body is not valid JSON") from None


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

@vault_view
async def list_items(request: web.Request) -> web.Response:
    items = await _store(request).list_for_owner(
        _user_id(request), dict(request.query),
    )
    return json_response(items)


@vault_view
async def create_item(request: web.Request) -> web.Response:
    item = await _store(request).create(
        _user_id(request), await _json_body(request),
    )
    return json_response(item, status=201)


@vault_view
async def get_item(request: web.Request) -> web.Response:
    item = await _store(request).get_one_decrypted(
        _user_id(request), request.match_info["item_id"],
    )
    return json_response(item)


@vault_view
async def update_item(request: web.Request) -> web.Response:
    item = await _store(request).update(
        _user_id(request),
        request.match_info["item_id"],
        await _json_body(request),
    )
    return json_response(item)


@vault_view
async def delete_item(request: web.Request) -> web.Response:
    await _store(request).delete(
        _user_id(request), request.match_info["item_id"],
    )
    return web.Response(status=204)


@vault_view
async def delete_all(request: web.Request) -> web.Response:
    count = await _store(request).delete_all(_user_id(request))
    return json_response({"count": count})


@vault_view
async def export_items(request: web.Request) -> web.Response:
    return web.Response(
        body=await _store(request).export_json(_user_id(request)),
        content_type="application/json",
    )


@vault_view
async def import_items(request: web.Request) -> web.Response:
    result = await _store(request).import_json(
        _user_id(request), await request.read(),
    )
    return json_response(result)


@vault_view
async def stats(request: web.Request) -> web.Response:
    return json_response(await _store(request).get_stats(_user_id(request)))


@vault_view
async def generate_password(request: web.Request) -> web.Response:
    _user_id(request)
    length = clamp_password_length(
        request.query.get("length", PASSWORD_DEFAULT_LENGTH)
    )
    return json_response(
        {"password": _store(request).generate_password(length)}
    )


def setup_vault(
    app: web.Application, store: VaultStore, prefix: str = "/api/vault",
) -> web.Application:
    """Register the vault store and its routes on ``app``."""
    app[VAULT_STORE_KEY] = store
    router = app.router
    router.add_get(prefix, list_items)
    router.add_post(prefix, create_item)
    router.add_delete(prefix, delete_all)
    router.add_get(f"{prefix}/export", export_items)
    router.add_post(f"{prefix}/import", import_items)
    router.add_get(f"{prefix}/stats", stats)
    router.add_get(f"{prefix}/generate-password", generate_password)
    router.add_get(f"{prefix}/{{item_id}}", get_item)
    router.add_patch(f"{prefix}/{{item_id}}", update_item)
    router.add_delete(f"{prefix}/{{item_id}}", delete_item)
    logger.debug("Vault routes registered under %s", prefix)
    return app
