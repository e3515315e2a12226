import logging
from pathlib import Path

from fastapi import FastAPI

from adventure_engine.config import Settings, configure_logging, load_engine_config
from adventure_engine.generator import Generator, HttpGenerator
from adventure_engine.routes import router
from adventure_engine.storage import Storage

logger = logging.getLogger(__name__)

ENV_FILE = Path(__file__).parent.parent / ".env"


def create_app(
    settings: Settings | None = None,
    generator: Generator | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env(ENV_FILE)
    configure_logging(settings.debug)
    logger.info("starting with %s", settings.redacted())

    app = FastAPI(title="Adventure Engine")
    app.state.settings = settings
    app.state.config = load_engine_config(settings.engine_config)
    app.state.storage = Storage(settings.data_dir)
    app.state.generator = generator or HttpGenerator(
        provider_url=settings.generator_url,
        api_key=settings.generator_api_key,
        provider_format=settings.generator_format,
        model=settings.generator_model,
        timeout=settings.generator_timeout,
    )
    app.state.engines = {}
    app.state.locks = {}
    app.include_router(router, prefix="/api")
    return app
