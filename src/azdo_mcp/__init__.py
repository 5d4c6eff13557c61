"""azdo-mcp: Azure DevOps operations exposed as MCP tools over stdio and HTTP."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("azdo-mcp")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from azdo_mcp.dispatch import Dispatcher, Envelope, ErrorKind
from azdo_mcp.session import SessionManager

__all__ = ["Dispatcher", "Envelope", "ErrorKind", "SessionManager", "__version__"]
