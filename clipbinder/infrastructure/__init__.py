"""Infrastructure layer for shared external integrations.

This module contains infrastructure components like the shared HTTP client
and the multilingual tokenizer.
"""

from clipbinder.infrastructure.http_client import HTTPClient

__all__ = ["HTTPClient"]
