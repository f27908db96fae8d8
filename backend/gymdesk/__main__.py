"""Persistent-mode runner: ``python -m gymdesk`` or the ``gymdesk`` console script.

Invariants:
    - Binds a listener only in persistent mode; ephemeral hosts own the listener
    - Startup connection failure exits non-zero (uvicorn aborts on lifespan failure)
"""

import logging
import sys

import uvicorn

from gymdesk.config import get_settings
from gymdesk.core.execution_context import resolve
from gymdesk.infrastructure.observability import setup_logging

logger = logging.getLogger("gymdesk")


def main() -> int:
    settings = get_settings()
    context = resolve(settings)
    setup_logging(settings.log_level, settings.log_format)

    if context.is_ephemeral:
        logger.error(
            "Ephemeral execution context detected; the host invokes the app, "
            "no listener is bound. Set EXECUTION_MODE=persistent to run locally.",
            extra={"platform": context.platform.value},
        )
        return 2

    logger.info(f"Server starting on port {context.port}")
    logger.info(f"API Base URL: http://localhost:{context.port}")
    logger.info(f"Health Check: http://localhost:{context.port}/health")
    uvicorn.run(
        "gymdesk.main:app",
        host=settings.host,
        port=context.port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
