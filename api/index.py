"""Serverless entry point.

Vercel's Python runtime loads the ASGI ``app`` from this file for every request;
AWS Lambda invokes ``handler``, which Mangum translates from API Gateway events.
Both run the same pipeline; the execution context is resolved from VERCEL /
AWS_LAMBDA_FUNCTION_NAME, so no listener is bound here.

Lifespan is off: a warm container keeps the shared database connection across
invocations, and the readiness gate connects on first use.
"""

import os
import sys

# The application package lives in backend/
backend_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "backend")
if backend_path not in sys.path:
    sys.path.insert(0, backend_path)

from mangum import Mangum  # noqa: E402

from gymdesk.main import app  # noqa: E402


def make_handler(asgi_app) -> Mangum:
    return Mangum(asgi_app, lifespan="off")


handler = make_handler(app)

__all__ = ["app", "handler", "make_handler"]
