# pagewright/selectors/__init__.py
"""
Selectors package
-----------------
Translate element kinds and selector maps into backend queries.
"""

from .query import KIND_CSS, Query, compile_query

__all__ = [
    "KIND_CSS",
    "Query",
    "compile_query",
]
