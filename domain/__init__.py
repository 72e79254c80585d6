"""Terrain Height Domain Layer.

This package contains the core business logic organized by bounded contexts:
- heightmap: Terrain shapes merged from painted cells, line-of-sight queries
"""

from domain import heightmap

__all__ = ["heightmap"]
