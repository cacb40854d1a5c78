"""
mock_repository.daemon
----------------------
A development repository server built with FastAPI.

It publishes a discovery document at ``/`` listing services held in an
in-memory registry. Services can be preloaded from a YAML/JSON catalog
file and added or removed at runtime through the REST API. Intended for
local development, testing and demonstration of the repository client.
"""
import json
import logging
import socket
from pathlib import Path
from typing import Any, Optional

import typer
import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from common.app_setup import setup_logging
from common.config import load_text_payload

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "1.0"


class ServiceEntryModel(BaseModel):
    """A service entry as published in the discovery document."""
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)
    url: str | list[str] = Field(..., description="Absolute or root-relative URL(s)")
    version: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _url_not_empty(cls, value: str | list[str]) -> str | list[str]:
        urls = [value] if isinstance(value, str) else value
        if not urls or not all(u.strip() for u in urls):
            raise ValueError("url must be a non-blank string or a non-empty list of non-blank strings")
        return value

    @model_validator(mode="after")
    def _single_url_field(self) -> "ServiceEntryModel":
        # clients treat an entry carrying both keys as malformed
        if "urls" in (self.model_extra or {}):
            raise ValueError("use 'url' for one or more endpoints, not 'urls'")
        return self


class RepositoryDocumentModel(BaseModel):
    version: str = PROTOCOL_VERSION
    services: list[ServiceEntryModel] = Field(default_factory=list)


def create_app(services: Optional[list[ServiceEntryModel | dict[str, Any]]] = None) -> FastAPI:
    """Create the server app, optionally preloaded with service entries."""
    app = FastAPI(title="mock repository")
    registry: list[ServiceEntryModel] = []
    app.state.registry = registry

    def find(name: str) -> Optional[ServiceEntryModel]:
        return next((s for s in registry if s.name.casefold() == name.casefold()), None)

    for entry in services or []:
        registry.append(entry if isinstance(entry, ServiceEntryModel) else ServiceEntryModel.model_validate(entry))

    @app.get("/", response_model=RepositoryDocumentModel, response_model_exclude_none=True)
    def describe() -> RepositoryDocumentModel:
        """The discovery document."""
        logger.info(f"Description requested: {len(registry)} services")
        return RepositoryDocumentModel(services=list(registry))

    @app.get("/status")
    def status():
        """Health/status endpoint."""
        server = getattr(app.state, "uvicorn_server", None)
        state = "shutting_down" if server and server.should_exit else "ok"
        return {"status": state, "services": len(registry)}

    @app.post("/services", response_model=ServiceEntryModel, status_code=201, response_model_exclude_none=True)
    def register_service(entry: ServiceEntryModel) -> ServiceEntryModel:
        if not entry.name.strip():
            logger.warning(f"Invalid service name: {entry.name!r}")
            raise HTTPException(status_code=422, detail="Missing or invalid 'name' field")
        if find(entry.name) is not None:
            logger.warning(f"Duplicate service name: {entry.name!r}")
            raise HTTPException(status_code=409, detail="A service with this name already exists")
        registry.append(entry)
        logger.info(f"Registered service: {entry.name} -> {entry.url}")
        return entry

    @app.delete("/services/{name}", status_code=204)
    def remove_service(name: str):
        entry = find(name)
        if entry is None:
            logger.warning(f"Service not found for removal: {name}")
            raise HTTPException(status_code=404, detail="Service not found")
        registry.remove(entry)
        logger.info(f"Removed service: {entry.name}")

    @app.post("/shutdown")
    def shutdown(request: Request):
        """Shutdown the server gracefully."""
        logger.info("Shutdown requested via /shutdown endpoint.")
        server = getattr(request.app.state, "uvicorn_server", None)
        if server:
            server.should_exit = True
        return {"message": "Server shutting down"}

    return app


def load_catalog(path: str | Path) -> list[ServiceEntryModel]:
    """Read service entries from a YAML/JSON file: a list, or a mapping with a 'services' list."""
    payload = load_text_payload(Path(path).read_text())
    if isinstance(payload, dict):
        payload = payload.get("services")
    if not isinstance(payload, list):
        raise ValueError(f"Catalog {path} must contain a list of services")
    return [ServiceEntryModel.model_validate(entry) for entry in payload]


app_cli = typer.Typer(add_completion=False)


@app_cli.command()
def run(port: int = typer.Option(None, help="Port to run the server on (auto if not set)"),
        catalog: Optional[str] = typer.Option(None, help="YAML/JSON file with services to preload")):
    """Run the server with Uvicorn on localhost, reporting the actual port used."""
    setup_logging(app_name="mock_repository", daemon=True)
    services = load_catalog(catalog) if catalog else []
    app = create_app(services)
    if port is None or port == 0:
        # Bind to port 0 to get a free port, then close and reuse
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(('127.0.0.1', 0))
            port = s.getsockname()[1]
        logger.info(f"Selected port: {port}")
        print(json.dumps({"event": "port_selected", "port": port}), flush=True)
    else:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind(('127.0.0.1', port))
            except OSError:
                logger.error(f"Port {port} is already in use.")
                print(json.dumps({"event": "port_in_use", "port": port}), flush=True)
                raise typer.Exit(98)  # 98 = EADDRINUSE
        logger.info(f"Using port: {port}")
        print(json.dumps({"event": "port_used", "port": port}), flush=True)
    config = uvicorn.Config(app, host="127.0.0.1", port=port, log_level="info")
    server = uvicorn.Server(config)
    app.state.uvicorn_server = server  # for /shutdown
    logger.info(f"Starting Uvicorn server on port {port}")
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt in main thread")
    logger.info("Server stopped, exiting process")


if __name__ == "__main__":
    app_cli()
