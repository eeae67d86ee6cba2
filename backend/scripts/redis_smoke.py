"""Redis connectivity smoke test for the stats engine.

Records one view for a throwaway comic and reads its stats back:
    python scripts/redis_smoke.py
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from comicstats.config import settings  # noqa: E402
from comicstats.services.stats_client import StatsClient  # noqa: E402
from comicstats.services.store import StoreConnection  # noqa: E402

COMIC_ID = "TEST_comicid"
GUEST_ID = "TEST_guestid"

print(f"Connecting to redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB} ...")
store = StoreConnection(save_policy="")
store.connect()
print("PING:", store.ping())
client = StatsClient(store)
print("AddView recorded:", client.add_view(COMIC_ID, GUEST_ID))
print("Stats:", client.fetch_comic_stats(COMIC_ID).to_dict())
store.close()
print("Done.")
