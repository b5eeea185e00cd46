from .proxy import ElementProxy, OPERATIONS, TEXT_KINDS, TOGGLE_KINDS

__all__ = [
    "ElementProxy",
    "OPERATIONS",
    "TEXT_KINDS",
    "TOGGLE_KINDS",
]
