"""
Pipeline API server

    python server.py          # HOST / PORT from settings (default 0.0.0.0:8080)
"""

import logging
import os

import uvicorn

from api import PipelineServices, create_app
from pipeline_settings import load_settings

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    settings = load_settings()
    logger.info("Starting pipeline API with %s", settings.to_dict())
    app = create_app(PipelineServices.from_settings(settings))
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
