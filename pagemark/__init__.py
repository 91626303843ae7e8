"""
pagemark - interactive annotation of document pages.

This package contains the main application modules:
- editor: Annotation engine, tools, hit-testing, rendering and stores
- ui: Main window
- services: Application services (config, logging)
"""

__version__ = "0.1.0"
