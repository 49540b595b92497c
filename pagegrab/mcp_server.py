"""MCP server exposing the pagegrab download tool."""

from __future__ import annotations

import asyncio
import logging

from mcp.server.fastmcp import FastMCP

from .config import load_config
from .errors import StorageFailure
from .models import CaptureMode
from .reporter import LogReporter
from .services import Services

logger = logging.getLogger("pagegrab.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="pagegrab")

# One browser job at a time, as with the HTTP server.
_download_lock = asyncio.Lock()


@mcp.tool()
async def download(url: str, mode: str = "default") -> str:
    """Download a Scribd document, SlideShare deck or Everand podcast and return the saved path."""

    async with _download_lock:
        services = Services.create(load_config())
        try:
            artifact = await services.downloader.execute(url, CaptureMode.parse(mode), LogReporter())
            try:
                services.cache.save(url, str(artifact.path), artifact.title)
            except StorageFailure as exc:
                logger.warning("%s", exc)
        finally:
            await services.close()
    return str(artifact.path)


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
