"""
Core package for pagewright.
Lightweight package init to avoid import cycles.

Consumers should import submodules directly, e.g.:
  from pagewright.core.session import Session
  from pagewright.core.page_loader import load_registry
"""

__all__: list[str] = []
