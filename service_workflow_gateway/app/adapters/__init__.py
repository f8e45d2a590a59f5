"""
Adapters package for the Workflow Gateway.

Contains the HTTP client for the upstream workflow-execution API. Adapters
encapsulate base URLs, request shapes, and the mapping of transport
failures onto shared errors.
"""

from .upstream_client import UpstreamClient

__all__ = [
    "UpstreamClient",
]
