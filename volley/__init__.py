"""
volley - Interactive HTTP client with scripted requests and a load-test mode.

Single requests run pre/post Python scripts in a restricted sandbox; load
tests fire N concurrent virtual users x M sequential attempts over async
HTTP/2 and report latency and throughput.
"""

from .exceptions import (
    ConfigurationError,
    ScriptFailure,
    TextGenerationError,
    TransportFailure,
    ValidationError,
    VolleyError,
)

__all__ = [
    "__version__",
    "ConfigurationError",
    "ScriptFailure",
    "TextGenerationError",
    "TransportFailure",
    "ValidationError",
    "VolleyError",
]

__version__ = "1.0.0"
