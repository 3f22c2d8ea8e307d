from quart import Blueprint, jsonify

from foodglam.app.services.container import get_search_api


recipes_bp = Blueprint("recipes", __name__, url_prefix="/api/recipes")


@recipes_bp.get("/<recipe_id>/similar")
async def similar_recipes(recipe_id: str):
    results = await get_search_api().similar(recipe_id)
    return jsonify({"results": results})
