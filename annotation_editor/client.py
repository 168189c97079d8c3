"""HTTP client for the annotation server."""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import requests

from .config import EditorSettings
from .errors import ApiError, AuthExpiredError, NotFoundError
from .session import SessionContext

logger = logging.getLogger(__name__)


class AnnotationClient:
    """Annotation server API client.

    Holds the caller's ``SessionContext`` explicitly. Any 401 on an
    authenticated call clears it, runs ``on_auth_expired`` (sending the user
    back to sign-in is the caller's job) and raises ``AuthExpiredError``.
    """

    def __init__(
        self,
        settings: EditorSettings = None,
        context: Optional[SessionContext] = None,
        on_auth_expired: Optional[Callable[[], None]] = None,
        http: Optional[requests.Session] = None,
    ):
        self.settings = settings or EditorSettings()
        self.host = self.settings.base_url.rstrip("/")
        self.context = context
        self.on_auth_expired = on_auth_expired
        self.http = http or requests.Session()

    @property
    def signed_in(self) -> bool:
        return self.context is not None and not self.context.is_expired()

    # Accounts

    def sign_up(self, email: str, password: str, confirm_password: str) -> Dict[str, Any]:
        return self._json(
            "POST",
            "/signUp",
            authenticated=False,
            json={"email": email, "password": password, "confirmPassword": confirm_password},
        )

    def login(self, email: str, password: str) -> SessionContext:
        """Sign in and keep the resulting session context."""
        payload = self._json(
            "POST", "/login", authenticated=False, json={"email": email, "password": password}
        )
        self.context = SessionContext.from_login(payload)
        logger.info(f"Signed in as {self.context.email}")
        return self.context

    def logout(self) -> None:
        """Destroy the server session and drop the local context."""
        if self.context is None:
            return
        try:
            self._request("POST", "/logout")
        except AuthExpiredError:
            # already gone on the server
            pass
        finally:
            self.context = None

    # Projects

    def list_projects(self) -> List[Dict[str, Any]]:
        return self._json("GET", "/projects")

    def create_project(self, name: str, description: str = None, labels: Iterable[str] = ()) -> Dict[str, Any]:
        return self._json(
            "POST", "/projects", json={"name": name, "description": description, "labels": list(labels)}
        )

    def get_project(self, project_id: str) -> Dict[str, Any]:
        return self._json("GET", f"/project/{project_id}")

    def update_project(self, project_id: str, **changes: Any) -> Dict[str, Any]:
        return self._json("PUT", f"/projects/{project_id}", json=changes)

    def delete_project(self, project_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}")

    def list_images(self, project_id: str, skip: int = 0, limit: Optional[int] = None) -> Dict[str, Any]:
        params = {"skip": skip}
        if limit is not None:
            params["limit"] = limit
        return self._json("GET", f"/projects/{project_id}/images", params=params)

    def upload_images(self, project_id: str, paths: Iterable[Path]) -> List[Dict[str, Any]]:
        """Upload image files from disk."""
        handles = [open(path, "rb") for path in paths]
        try:
            files = [("files", (Path(h.name).name, h)) for h in handles]
            return self._json("POST", f"/projects/{project_id}/images", files=files)["images"]
        finally:
            for handle in handles:
                handle.close()

    def statistics(self, project_id: str) -> Dict[str, Any]:
        return self._json("GET", f"/projects/{project_id}/statistics")

    def project_labels(self, project_id: str) -> List[Dict[str, Any]]:
        return self._json("GET", f"/projects/{project_id}/labels")

    def attach_labels(self, project_id: str, label_ids: Iterable[str]) -> List[Dict[str, Any]]:
        return self._json("POST", f"/projects/{project_id}/labels", json={"labels": list(label_ids)})

    def invite_member(self, project_id: str, email: str, role: str = "visitor") -> List[Dict[str, Any]]:
        return self._json("POST", f"/projects/{project_id}/members", json={"email": email, "role": role})

    def update_member_role(self, project_id: str, email: str, role: str) -> List[Dict[str, Any]]:
        return self._json("PUT", f"/projects/{project_id}/members/{email}", json={"role": role})

    def remove_member(self, project_id: str, email: str) -> List[Dict[str, Any]]:
        return self._json("DELETE", f"/projects/{project_id}/members/{email}")

    def export_project(self, project_id: str) -> Tuple[Dict[str, Any], int]:
        """Download the COCO export.

        Returns:
            tuple: (COCO document, number of export warnings)
        """
        response = self._request("GET", f"/projects/{project_id}/export")
        warnings = int(response.headers.get("X-Export-Warnings", 0))
        return response.json(), warnings

    # Labels

    def list_labels(self) -> List[Dict[str, Any]]:
        return self._json("GET", "/labels")

    def create_label(self, name: str, color: str, project_id: Optional[str] = None) -> Dict[str, Any]:
        body = {"name": name, "color": color}
        if project_id is not None:
            body["projectId"] = project_id
        return self._json("POST", "/labels", json=body)

    def update_label(self, label_id: str, **changes: Any) -> Dict[str, Any]:
        return self._json("PUT", f"/labels/{label_id}", json=changes)

    # Images and annotations

    def get_image(self, image_id: str) -> Dict[str, Any]:
        """``{image, projectId, members}`` with annotations populated."""
        return self._json("GET", f"/image/{image_id}")

    def delete_image(self, image_id: str) -> None:
        self._request("DELETE", f"/image/{image_id}")

    def list_annotations(self, image_id: str) -> List[Dict[str, Any]]:
        return self._json("GET", f"/image/{image_id}/annotations")["annotations"]

    def save_annotations(self, image_id: str, annotations: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Create annotations in one request; returns the image's full list."""
        return self._json(
            "POST", f"/image/{image_id}/annotations", json={"annotations": annotations}
        )["annotations"]

    def update_annotation(self, annotation_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._json("PUT", f"/annotations/{annotation_id}", json=data)["annotation"]

    def set_annotation_label(self, annotation_id: str, label_id: Optional[str]) -> Dict[str, Any]:
        return self._json(
            "PUT", f"/annotations/{annotation_id}/label", json={"labelId": label_id}
        )["annotation"]

    def delete_annotation(self, annotation_id: str) -> None:
        self._request("DELETE", f"/annotations/{annotation_id}")

    # Transport

    def _json(self, method: str, path: str, authenticated: bool = True, **kwargs: Any) -> Any:
        return self._request(method, path, authenticated=authenticated, **kwargs).json()

    def _request(self, method: str, path: str, authenticated: bool = True, **kwargs: Any) -> requests.Response:
        """Send a request and map failures to editor errors.

        Raises:
            AuthExpiredError: No live session, or the server answered 401
            NotFoundError: The server answered 404
            ApiError: Any other failure, including connection errors
        """
        headers = kwargs.pop("headers", {})
        if authenticated:
            if not self.signed_in:
                self._expire("Not signed in or session expired")
            headers.update(self.context.authorization())

        url = f"{self.host}{path}"
        try:
            response = self.http.request(
                method, url, headers=headers, timeout=self.settings.request_timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise ApiError(None, f"Request failed: {e}") from e

        if response.ok:
            return response

        message = _error_message(response)
        if response.status_code == 401 and authenticated:
            self._expire(message)
        if response.status_code == 404:
            raise NotFoundError(404, message)
        raise ApiError(response.status_code, message)

    def _expire(self, message: str) -> None:
        logger.warning(f"Session ended: {message}")
        self.context = None
        if self.on_auth_expired is not None:
            self.on_auth_expired()
        raise AuthExpiredError(401, message)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str):
        return detail
    return response.text or response.reason or f"HTTP {response.status_code}"
