"""Entry point: serve the pipeline application with uvicorn."""

import uvicorn

from middleware_pipeline.src.settings import settings
from middleware_pipeline.utils.uvicorn_logging_config import get_uvicorn_log_config


def main():
    uvicorn.run(
        "middleware_pipeline.src.api:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=get_uvicorn_log_config(),
    )


if __name__ == "__main__":
    main()
