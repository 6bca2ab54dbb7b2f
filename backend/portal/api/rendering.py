# portal/api/rendering.py
"""
Page rendering collaborator.

Routes hand a page name and named parameters to the renderer; the markup
itself lives outside this service. The default renderer answers JSON so API
clients and tests can read the parameters directly.
"""
from typing import Any, Mapping, Protocol

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.requests import Request
from starlette.responses import Response


class PageRenderer(Protocol):
    def render(
        self,
        request: Request,
        page: str,
        params: Mapping[str, Any],
        status_code: int = 200,
    ) -> Response: ...


class JsonPageRenderer:
    def render(self, request, page, params, status_code=200):
        return JSONResponse(
            {"page": page, "params": jsonable_encoder(dict(params))},
            status_code=status_code,
        )
