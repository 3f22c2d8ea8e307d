from quart import Quart, jsonify
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException
import logging

from foodglam.settings import settings

load_dotenv()


def create_app(services=None):
    """Build the Quart application.

    ``services`` replaces the default :class:`AppServices` container, which
    lets tests run the routes against stub collaborators.
    """

    from .services.container import EXTENSION_KEY, AppLifecycle, AppServices

    if services is None:
        services = AppServices.create()

    lifecycle = AppLifecycle(services)

    app = Quart(__name__)
    app.config["JSON_SORT_KEYS"] = False
    app.extensions[EXTENSION_KEY] = services

    logging.basicConfig(
        level=str(settings.LOG_LEVEL).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    from .routes.search import search_bp
    from .routes.recipes import recipes_bp

    app.register_blueprint(search_bp)
    app.register_blueprint(recipes_bp)

    app.extensions[f"{EXTENSION_KEY}_lifecycle"] = lifecycle

    def _install_lifecycle() -> None:
        if hasattr(app, "lifecycle"):

            @app.lifecycle  # type: ignore[misc]
            async def _lifespan(app: Quart):
                async with lifecycle:
                    yield

        else:

            @app.before_serving
            async def _start_lifecycle() -> None:
                await lifecycle.start()

            @app.after_serving
            async def _stop_lifecycle() -> None:
                await lifecycle.stop()

    _install_lifecycle()

    @app.errorhandler(HTTPException)
    async def handle_http_exception(e: HTTPException):
        return jsonify({"error": e.description or e.name}), e.code or 500

    @app.errorhandler(Exception)
    async def handle_exception(e):
        app.logger.exception("Unhandled exception: %s", e)
        return jsonify({"error": str(e) or type(e).__name__}), 500

    app.logger.info("Application initialized")
    return app
