"""
Plugbase Plugin System - plugin lifecycle, resources and loading.

This module handles:
- Lifecycle state (initialize once, enable/disable hooks)
- Bundled resource access for directory and zip packages
- Manifest parsing
- Loading plugin packages on behalf of a host
"""

__all__ = []
