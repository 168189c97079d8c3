"""API routers."""

from . import annotations, auth, export, images, labels, projects

ROUTERS = [
    auth.router,
    projects.router,
    labels.router,
    images.router,
    annotations.router,
    export.router,
]

__all__ = ["ROUTERS"]
