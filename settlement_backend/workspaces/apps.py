# workspaces/apps.py

"""
WORKSPACES APP CONFIG

A workspace is the tenant boundary: every customer, order, stock row and
webhook inbox entry belongs to exactly one.
"""

from django.apps import AppConfig


class WorkspacesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "workspaces"
    verbose_name = "Workspaces"
