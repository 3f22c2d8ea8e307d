import logging
from typing import Any

from quart import Blueprint, jsonify, request

from foodglam.app.api.search import InvalidSearchQuery
from foodglam.app.services.container import get_search_api


logger = logging.getLogger(__name__)

search_bp = Blueprint("search", __name__, url_prefix="/api/search")


async def _json_body() -> Any:
    payload = await request.get_json(force=True, silent=True)
    if payload is not None:
        return payload
    body = await request.get_data()
    if body and body.strip():
        raise InvalidSearchQuery("Request body is not valid JSON")
    return {}


@search_bp.post("/dbfts")
async def search_dbfts():
    try:
        raw = await _json_body()
        result = await get_search_api().search(raw)
    except InvalidSearchQuery as exc:
        logger.info("Rejecting search request: %s", exc)
        return jsonify({"error": str(exc)}), 400

    logger.debug(
        "Route returning %d of %d results (strategy=%s, fallback=%s)",
        len(result.documents),
        result.total,
        result.strategy.value,
        result.fallback,
    )
    return jsonify(result.as_payload())


@search_bp.get("/recipes")
async def search_recipes():
    payload = await get_search_api().search_posts(request.args)
    logger.debug("Route returning %d posts", len(payload["recipes"]))
    return jsonify(payload)
