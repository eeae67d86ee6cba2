# backend/run.py
import os
from pathlib import Path
import uvicorn

"""Local development entrypoint.

Runs the button/stats app with hot-reload, watching only the package sources.
"""

if __name__ == "__main__":
    backend_dir = Path(__file__).parent.resolve()

    # Ensure backend directory in PYTHONPATH for direct module imports
    current_pp = os.environ.get("PYTHONPATH", "")
    if not current_pp:
        os.environ["PYTHONPATH"] = str(backend_dir)
    elif str(backend_dir) not in current_pp.split(os.pathsep):
        os.environ["PYTHONPATH"] = f"{backend_dir}{os.pathsep}{current_pp}"

    reload = os.environ.get("UVICORN_RELOAD", "1") in {"1", "true", "TRUE"}
    uvicorn.run(
        "comicstats.main:app",
        host=os.environ.get("UVICORN_HOST", "127.0.0.1"),
        port=int(os.environ.get("UVICORN_PORT", "8080")),
        reload=reload,
        reload_dirs=[str(backend_dir / "comicstats")] if reload else None,
        log_level=os.environ.get("UVICORN_LOG_LEVEL", "info"),
    )
