# backend/comicstats/routers/buttons.py
"""
Button endpoints embedded on comic sites.

Views are handed to the ingestion queue and the response never waits for
Redis. Cache headers keep each browser to roughly one counted request a day.
"""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Dict, Optional
import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from comicstats.config import settings
from comicstats.deps import get_view_queue
from comicstats.services.guest_ids import is_comic_id, resolve_guest_id, split_view_id
from comicstats.services.view_queue import ViewQueue

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Buttons"])

LEGACY_BUTTON_RE = re.compile(r"([0-9]*)/([0-9])\.(jpg|gif|png)")
IMAGE_TYPES = {"gif": "image/gif", "jpg": "image/jpeg", "png": "image/png"}

# Headers for responses browsers may keep forever
_BOOT = datetime.now(timezone.utc)
CACHE_SINCE = format_datetime(_BOOT, usegmt=True)
CACHE_UNTIL = format_datetime(_BOOT + timedelta(days=365 * 60), usegmt=True)


def load_button_images(asset_dir: str) -> Dict[str, bytes]:
    """Read the legacy button images (old.gif/jpg/png) into memory."""
    images: Dict[str, bytes] = {}
    base = Path(asset_dir)
    for ext in IMAGE_TYPES:
        path = base / f"old.{ext}"
        try:
            images[ext] = path.read_bytes()
        except OSError as e:
            logger.warning(f"Button image {path} not loaded: {e}")
    return images


def _forever_headers(visibility: str = "public") -> Dict[str, str]:
    return {
        "Cache-Control": f"max-age=290304000, {visibility}",
        "Last-Modified": CACHE_SINCE,
        "Expires": CACHE_UNTIL,
    }


def _one_day_headers(visibility: str) -> Dict[str, str]:
    expires = datetime.now(timezone.utc) + timedelta(days=1)
    return {
        "Cache-Control": f"max-age=86400, {visibility}",
        "Expires": format_datetime(expires, usegmt=True),
    }


def _set_guest_cookie(response: Response, guest_id: str) -> None:
    response.set_cookie(
        settings.GUEST_COOKIE_NAME,
        guest_id,
        path="/",
        expires=datetime.now(timezone.utc) + timedelta(days=settings.GUEST_COOKIE_DAYS),
    )


def _button_image(request: Request, ext: str) -> bytes:
    data = getattr(request.app.state, "buttons", {}).get(ext)
    if data is None:
        raise HTTPException(status_code=404, detail="Not Found")
    return data


@router.get("/gid.js")
def guest_id_script(request: Request):
    """Global guest id script, cached by the browser for as long as possible."""
    if request.headers.get("if-none-match") or request.headers.get("if-modified-since"):
        return Response(status_code=304)

    guest_id = resolve_guest_id(request.cookies.get(settings.GUEST_COOKIE_NAME))
    headers = _forever_headers("private")
    headers["Etag"] = guest_id
    return Response(f"gid = '{guest_id}'", media_type="text/javascript", headers=headers)


@router.get("/v1/img.jpg")
def static_button(request: Request):
    return Response(_button_image(request, "jpg"), media_type="image/jpeg", headers=_forever_headers())


@router.get("/v1/img/{comic_id}")
def image_button(comic_id: str, request: Request, views: ViewQueue = Depends(get_view_queue)):
    """Image button for RSS readers and visitors without JavaScript."""
    if not is_comic_id(comic_id):
        raise HTTPException(status_code=404, detail="Not Found")

    guest_id = resolve_guest_id(request.cookies.get(settings.GUEST_COOKIE_NAME))
    views.enqueue(comic_id, guest_id)

    response = Response(_button_image(request, "jpg"), media_type="image/jpeg", headers=_one_day_headers("private"))
    _set_guest_cookie(response, guest_id)
    response.headers["Connection"] = "close"
    return response


@router.get("/v1/js/{comic_id}")
def button_script(comic_id: str):
    """Script run on the comic's site; injects the button iframe."""
    if not is_comic_id(comic_id):
        raise HTTPException(status_code=404, detail="Not Found")
    body = (
        "var a = document.getElementById('comicrank_button'); "
        "var i = document.createElement('iframe'); "
        f"i.src = '{settings.BUTTON_BASE_URL}/v1/html/{comic_id}'; "
        "i.width = '88px'; i.height = '31px'; i.style.border = 'none 0'; "
        "a.appendChild(i);"
    )
    return Response(body, media_type="text/javascript", headers=_one_day_headers("public"))


@router.get("/v1/html/{view_id}")
def button_html(view_id: str, views: ViewQueue = Depends(get_view_queue)):
    """Button iframe.

    First pass (comic id only) pulls the guest id from /gid.js and redirects
    to itself with the guest id appended. Second pass logs the view.
    """
    if len(view_id) == 4:
        if not is_comic_id(view_id):
            raise HTTPException(status_code=404, detail="Not Found")
        body = (
            "<script src='/gid.js'></script><body style='background:transparent'>"
            f"<script>location.replace('/v1/html/{view_id}'+gid)</script>"
        )
        return Response(body, media_type="text/html; charset=utf-8", headers=_forever_headers())

    parts = split_view_id(view_id)
    if parts is None:
        raise HTTPException(status_code=404, detail="Not Found")
    comic_id, guest_id = parts
    views.enqueue(comic_id, guest_id)

    body = (
        "<body style='margin:0;padding:0;overflow:hidden'>"
        f"<a href='{settings.SITE_URL}/comic/{comic_id}/in' target='_blank'>"
        "<img src='/v1/img.jpg' style='border: none'></a>"
    )
    response = Response(body, media_type="text/html; charset=utf-8", headers=_one_day_headers("private"))
    _set_guest_cookie(response, guest_id)
    response.headers["Connection"] = "close"
    return response


@router.get("/")
def site_root():
    return RedirectResponse(settings.SITE_URL, status_code=302)


@router.get("/robots.txt")
def robots():
    return PlainTextResponse("User-agent: *\nDisallow: /")


@router.get("/{legacy_id}/{image_name}")
def legacy_button(legacy_id: str, image_name: str, request: Request):
    """Buttons from the previous site, kept for old embeds."""
    m: Optional[re.Match] = LEGACY_BUTTON_RE.fullmatch(f"{legacy_id}/{image_name}")
    if not m:
        raise HTTPException(status_code=404, detail="Not Found")
    ext = m.group(3)
    return Response(_button_image(request, ext), media_type=IMAGE_TYPES[ext], headers=_forever_headers())
