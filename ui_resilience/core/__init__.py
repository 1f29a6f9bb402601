# ui_resilience/core/__init__.py
"""
Core package: retried element actions and the YAML element repository.
Lightweight package init to avoid import cycles.

Consumers should import submodules directly, e.g.:
  from ui_resilience.core.actions import ResilientElement
  from ui_resilience.core.descriptor_loader import ElementRepository
"""

__all__: list[str] = []
