"""Interview AI backends: Vertex AI REST client and the hosted function client."""

from .client import VertexRestClient
from .function import EdgeFunctionClient

__all__ = ["VertexRestClient", "EdgeFunctionClient"]
