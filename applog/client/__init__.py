"""
HTTP client for the platform log endpoint.
"""

from .http import LogClient, LogQuery, LogRequestError, ResponseSource

__all__ = ["LogClient", "LogQuery", "LogRequestError", "ResponseSource"]
