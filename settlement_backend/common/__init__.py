"""
Shared helpers for every app: domain error taxonomy and money normalization.
This is a plain package (not a Django app) and owns no models.
"""
