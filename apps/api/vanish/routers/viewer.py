from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from vanish.core.config import get_settings
from vanish.web.viewer import render_viewer

router = APIRouter(tags=["viewer"])

# The fragment carries the key; a redirect would drop it, so /v/{id} answers 200.
_NO_STORE = {"Cache-Control": "no-store"}


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
def index() -> HTMLResponse:
    return HTMLResponse(render_viewer(max_ttl_hours=get_settings().MAX_TTL_HOURS), headers=_NO_STORE)


@router.get("/v/{identifier}", response_class=HTMLResponse, include_in_schema=False)
def view_blob(identifier: str) -> HTMLResponse:
    # The page resolves the identifier itself from location.pathname.
    return HTMLResponse(render_viewer(max_ttl_hours=get_settings().MAX_TTL_HOURS), headers=_NO_STORE)
