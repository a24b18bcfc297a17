"""
Lattice Plugin System - Plugin registration, dependencies and lifecycle.

This module handles:
- Plugin descriptor parsing and validation
- Dependency graph maintenance and ordering
- Lifecycle hook execution
- Merging plugin contributions into a host CLI config
"""

__all__ = []
