"""
Codelist endpoints (V1 API).

Reads are open; writes need the administrator role and reload the cached
snapshot, so every response carries the new codelist version.
"""

import logging
from typing import Any, Dict

from fastapi import Body, Depends

from registry_engine.codelists import TABLES
from registry_engine.errors import CodelistError, RegistryError
from registry_engine.identity import CurrentUser, require_admin
from routes.common import http_error

logger = logging.getLogger(__name__)

INTEGER_KEYS = {"factors", "probabilities"}


def _table_rows(snapshot, table: str):
    if table == "probabilities":
        return [band.to_dict() for band in snapshot.probabilities]
    return snapshot.to_dict()[table]


def _parse_key(table: str, key: str):
    if table not in TABLES:
        raise CodelistError(f"Unknown codelist '{table}'")
    if table in INTEGER_KEYS:
        try:
            return int(key)
        except ValueError:
            raise CodelistError(f"{table} key must be an integer, got '{key}'")
    return key


def register_codelist_routes(app, codelists):
    """Register codelist endpoints on the FastAPI app."""

    @app.get("/api/v1/codelists")
    async def get_codelists():
        """All four reference tables and the snapshot version."""
        return codelists.current().to_dict()

    @app.post("/api/v1/codelists/reload")
    async def reload_codelists(user: CurrentUser = Depends(require_admin)):
        try:
            snapshot = codelists.load()
        except RegistryError as e:
            raise http_error(e) from e
        return {"version": snapshot.version}

    @app.get("/api/v1/codelists/{table}")
    async def get_codelist(table: str):
        if table not in TABLES:
            raise http_error(CodelistError(f"Unknown codelist '{table}'"))
        snapshot = codelists.current()
        return {"version": snapshot.version, "items": _table_rows(snapshot, table)}

    @app.post("/api/v1/codelists/{table}", status_code=201)
    async def create_codelist_item(
        table: str,
        data: Dict[str, Any] = Body(...),
        user: CurrentUser = Depends(require_admin)
    ):
        try:
            snapshot = codelists.save(table, data)
        except RegistryError as e:
            raise http_error(e) from e
        logger.info(f"{user.email or user.user_id} added a {table} item")
        return {"version": snapshot.version, "items": _table_rows(snapshot, table)}

    @app.put("/api/v1/codelists/{table}/{key}")
    async def update_codelist_item(
        table: str,
        key: str,
        data: Dict[str, Any] = Body(...),
        user: CurrentUser = Depends(require_admin)
    ):
        try:
            snapshot = codelists.save(table, data, _parse_key(table, key))
        except RegistryError as e:
            raise http_error(e) from e
        logger.info(f"{user.email or user.user_id} updated {table} item {key}")
        return {"version": snapshot.version, "items": _table_rows(snapshot, table)}

    @app.delete("/api/v1/codelists/{table}/{key}")
    async def delete_codelist_item(
        table: str,
        key: str,
        user: CurrentUser = Depends(require_admin)
    ):
        try:
            snapshot = codelists.delete_item(table, _parse_key(table, key))
        except RegistryError as e:
            raise http_error(e) from e
        logger.info(f"{user.email or user.user_id} deleted {table} item {key}")
        return {"status": "deleted", "version": snapshot.version}
