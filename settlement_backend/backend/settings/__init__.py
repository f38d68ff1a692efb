"""
Settings package.

Load a concrete module: backend.settings.dev or backend.settings.prod.
"""
