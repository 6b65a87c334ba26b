"""HTTP API for federated search."""

from .server import create_api_server, run_api_server

__all__ = ["create_api_server", "run_api_server"]
