"""
Utilities package for sqlgate.

Exports shared helpers for logging and record normalization. Keep this
package lightweight and free of connection handling.
"""

from sqlgate.utils.logging import configure_logging, get_logger
from sqlgate.utils.normalizer import ParseResult, normalize, parse_repairable, strip_namespace_prefixes

__all__ = [
    "configure_logging",
    "get_logger",
    "ParseResult",
    "normalize",
    "parse_repairable",
    "strip_namespace_prefixes",
]
