"""Storefront ordering FastAPI application.

Web server that processes order commands synchronously via HTTP. Each
request runs inside the ordering domain context.

Orders and products are stored in the database named by DATABASE_URL
(sqlite by default). Create its schema once with `python src/manage.py setup-db`.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from ordering/domain.toml.
from ordering.api.app import create_app
from ordering.domain import ordering
from ordering.utils.logging import configure_logging

configure_logging()
ordering.init()

app = create_app()
