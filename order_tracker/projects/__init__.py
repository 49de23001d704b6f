"""Projects: per-user containers for orders."""

from .crud import create_project, get_project, list_projects, require_owned_project

__all__ = ["create_project", "get_project", "list_projects", "require_owned_project"]
