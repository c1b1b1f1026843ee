"""API routers."""

from . import observability, query

__all__ = ["observability", "query"]
