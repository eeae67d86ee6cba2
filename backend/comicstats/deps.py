from fastapi import Request

from comicstats.services.context import StatsContext
from comicstats.services.stats_client import StatsClient
from comicstats.services.view_queue import ViewQueue


def get_context(request: Request) -> StatsContext:
    return request.app.state.stats


def get_stats_client(request: Request) -> StatsClient:
    return get_context(request).client


def get_view_queue(request: Request) -> ViewQueue:
    return get_context(request).queue
