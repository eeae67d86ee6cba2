from fastapi import APIRouter, Depends, HTTPException
from typing import Any, Dict

from comicstats.deps import get_stats_client
from comicstats.services.guest_ids import is_comic_id
from comicstats.services.stats_client import StatsClient

router = APIRouter(prefix="/v1/stats", tags=["Stats"])


@router.get("/{comic_id}")
def comic_stats(comic_id: str, client: StatsClient = Depends(get_stats_client)) -> Dict[str, Any]:
    """Readership snapshot for one comic.

    Unknown comics map to 404 and an unreachable store to 503 through the
    application's exception handlers.
    """
    if not is_comic_id(comic_id):
        raise HTTPException(status_code=404, detail="Not Found")
    stats = client.fetch_comic_stats(comic_id)
    return stats.to_dict()
