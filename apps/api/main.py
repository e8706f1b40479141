"""uvicorn entrypoint for the Converse board API.

    uvicorn main:app --reload      (from apps/api)

The store backend comes from MESSAGE_STORE and friends (see converse.config).
Startup fails fast if the selected backend is missing its settings; the
first snapshot is fetched during the lifespan, so a store that is down at
boot leaves /health/ready at 503 until a refetch succeeds.
"""

from converse.app import add_request_id_middleware, create_app

app = create_app()
add_request_id_middleware(app)

__all__ = ["app"]
