"""JSON HTTP API around a CellNetwork.

Exposes the facade to browser UIs. `create_app` builds the FastAPI app;
`ApiServer` runs it with uvicorn in a daemon thread next to the tick
driver.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from cellnet.cells.identity import USER
from cellnet.errors import HelpRequestError, PurposeError, ValidationError
from cellnet.network import CellNetwork
from cellnet.simulation.driver import TickDriver

logger = logging.getLogger(__name__)


class InitRequest(BaseModel):
    count: int = Field(10, ge=0)


class AddCellRequest(BaseModel):
    parent_id: str | None = None
    expertise: str | None = None


class MessageRequest(BaseModel):
    source_id: str = USER
    target_id: str
    content: str
    direct: bool = False


class HelpRequest(BaseModel):
    cell_id: str
    text: str


class PurposeRequest(BaseModel):
    purpose: str


def create_app(network: CellNetwork, driver: TickDriver | None = None) -> FastAPI:
    """Build the API app for `network`; driver routes need a TickDriver."""
    app = FastAPI(title="cellnet")

    def _cell_or_404(cell_id: str) -> dict[str, Any]:
        cell = network.get_cell_by_id(cell_id)
        if cell is None:
            raise HTTPException(status_code=404, detail=f"Cell {cell_id} not found")
        return cell.to_dict()

    @app.get("/api/state")
    def get_state() -> dict[str, Any]:
        state = network.snapshot().to_dict()
        state["driver"] = driver.state.value if driver else None
        return state

    @app.get("/api/cells/{cell_id}")
    def get_cell(cell_id: str) -> dict[str, Any]:
        return _cell_or_404(cell_id)

    @app.get("/api/cells/{cell_id}/neighbors")
    def get_neighbors(cell_id: str, radius: float | None = None) -> list[dict[str, Any]]:
        _cell_or_404(cell_id)
        return [c.to_dict() for c in network.get_neighbors(cell_id, radius)]

    @app.get("/api/connections")
    def get_connections() -> dict[str, list[str]]:
        return network.get_cell_connections()

    @app.post("/api/init")
    def init_network(body: InitRequest) -> dict[str, Any]:
        try:
            cells = network.initialize_network(body.count)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return {"cells": [c.to_dict() for c in cells]}

    @app.post("/api/tick")
    def tick() -> dict[str, Any]:
        return network.tick().to_dict()

    @app.post("/api/cells")
    def add_cell(body: AddCellRequest) -> dict[str, Any]:
        cell = network.add_cell(parent_id=body.parent_id, expertise=body.expertise)
        return {"cell": cell.to_dict() if cell else None}

    @app.delete("/api/cells/{cell_id}")
    def remove_cell(cell_id: str) -> dict[str, Any]:
        if not network.remove_cell(cell_id):
            raise HTTPException(status_code=404, detail=f"Cell {cell_id} not found")
        return {"removed": cell_id}

    @app.post("/api/messages")
    def send_message(body: MessageRequest) -> dict[str, Any]:
        try:
            result = network.send_message(
                body.source_id, body.target_id, body.content, direct=body.direct
            )
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return result.to_dict()

    @app.post("/api/help")
    def ask_for_help(body: HelpRequest) -> dict[str, Any]:
        try:
            return network.ask_for_help(body.cell_id, body.text).to_dict()
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except HelpRequestError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

    @app.post("/api/purpose")
    def set_purpose(body: PurposeRequest) -> dict[str, Any]:
        try:
            guidance = network.set_purpose(body.purpose)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except PurposeError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        return {"purpose": network.purpose, "guidance": guidance}

    @app.post("/api/driver/{action}")
    def control_driver(action: str) -> dict[str, Any]:
        if driver is None:
            raise HTTPException(status_code=409, detail="No tick driver attached")
        handlers = {
            "start": driver.start,
            "pause": driver.pause,
            "resume": driver.resume,
            "stop": driver.stop,
        }
        handler = handlers.get(action)
        if handler is None:
            raise HTTPException(status_code=404, detail=f"Unknown driver action: {action}")
        handler()
        return {"driver": driver.state.value}

    return app


class ApiServer:
    """Runs the API with uvicorn in a daemon thread.

    Usage:
        server = ApiServer(network, driver, port=8001)
        server.start()
        ...
        server.stop()
    """

    def __init__(
        self,
        network: CellNetwork,
        driver: TickDriver | None = None,
        host: str = "127.0.0.1",
        port: int = 8001,
    ):
        self.host = host
        self.port = port
        self._ready = threading.Event()
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self.app = create_app(network, driver)

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            self._ready.set()
            yield

        self.app.router.lifespan_context = lifespan

    def start(self) -> None:
        """Start the uvicorn server in a daemon thread."""

        def run_server() -> None:
            config = uvicorn.Config(
                self.app, host=self.host, port=self.port, log_level="warning", loop="asyncio"
            )
            self._server = uvicorn.Server(config)
            logger.info(f"Starting API server at http://{self.host}:{self.port}")
            asyncio.run(self._server.serve())

        self._thread = threading.Thread(target=run_server, name="cellnet-api", daemon=True)
        self._thread.start()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def wait_until_ready(self, timeout: float = 5.0) -> bool:
        if not self._ready.wait(timeout=timeout):
            logger.warning(f"API server did not become ready within {timeout}s")
            return False
        return True

    def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        logger.info("API server stopped")
