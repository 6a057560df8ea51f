"""Serverhop utilities package.

Helpers shared by discovery, ranking and the console controller, such as
host-name normalization and console text cleanup.
"""

from serverhop.utils.text import clean_hostname, lowercase_terms, strip_ansi

__all__ = [
    "clean_hostname",
    "lowercase_terms",
    "strip_ansi",
]
