"""Serving the prebuilt single-page front end alongside the API."""
from starlette.exceptions import HTTPException
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

INDEX_FILE = "index.html"


class SPAStaticFiles(StaticFiles):
    """
    Static files with a client-side routing fallback.

    Unknown paths outside /api answer with index.html so the browser router
    can resolve routes like /reset-password on a full page load.
    """

    def __init__(self, *args, api_prefix: str = "api", **kwargs):
        kwargs.setdefault("html", True)
        super().__init__(*args, **kwargs)
        self.api_prefix = api_prefix

    def _is_frontend_route(self, path: str) -> bool:
        return path.strip("/").split("/", 1)[0] != self.api_prefix

    async def get_response(self, path: str, scope: Scope):
        try:
            response = await super().get_response(path, scope)
        except HTTPException as e:
            if e.status_code != 404 or not self._is_frontend_route(path):
                raise
            return await super().get_response(INDEX_FILE, scope)

        if response.status_code == 404 and self._is_frontend_route(path):
            return await super().get_response(INDEX_FILE, scope)
        return response
