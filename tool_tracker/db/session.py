import os

from .engine import build_engine, build_session_factory


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


TOOL_TRACKER_DB_URL = _require_env("TOOL_TRACKER_DB_URL")

engine_tracker = build_engine(TOOL_TRACKER_DB_URL)

SessionLocalTracker = build_session_factory(engine_tracker)
