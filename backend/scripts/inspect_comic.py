"""Print readership stats for one comic straight from Redis.

Usage:
    python scripts/inspect_comic.py abcd
    python scripts/inspect_comic.py abcd --host 10.0.0.5 --port 6379
"""
import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from comicstats.config import Settings  # noqa: E402
from comicstats.errors import ComicNotFoundError, CommunicationError  # noqa: E402
from comicstats.services.stats_client import StatsClient  # noqa: E402
from comicstats.services.store import StoreConnection  # noqa: E402


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Inspect comic readership stats")
    ap.add_argument("comic_id", help="4 character comic id")
    ap.add_argument("--host", help="Redis host (default: REDIS_HOST)")
    ap.add_argument("--port", type=int, help="Redis port (default: REDIS_PORT)")
    args = ap.parse_args(argv)

    overrides = {}
    if args.host:
        overrides["REDIS_HOST"] = args.host
    if args.port:
        overrides["REDIS_PORT"] = args.port
    # The inspector must not touch the server's save policy
    overrides["REDIS_SAVE_POLICY"] = ""
    cfg = Settings(**overrides)

    store = StoreConnection(cfg=cfg)
    try:
        stats = StatsClient(store).fetch_comic_stats(args.comic_id)
    except ComicNotFoundError as e:
        print(f"{args.comic_id}: {e}", file=sys.stderr)
        return 1
    except CommunicationError as e:
        print(f"{args.comic_id}: {e} ({store.last_error})", file=sys.stderr)
        return 2
    finally:
        store.close()

    print(json.dumps(stats.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
