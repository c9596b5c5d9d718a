import requests
from typing import Dict, Any

from ..utils.cache import cache_json

FPL_BASE = "https://fantasy.premierleague.com/api"
BOOTSTRAP_TTL = 6 * 60 * 60

def fetch_bootstrap_static(session: requests.Session = None, timeout: float = 20.0) -> Dict[str, Any]:
    """
    Core FPL dataset: players (elements), teams, element_types.
    """
    s = session or requests.Session()
    r = s.get(f"{FPL_BASE}/bootstrap-static/", timeout=timeout)
    r.raise_for_status()
    return r.json()

def cached_bootstrap(path: str, ttl_seconds: int = BOOTSTRAP_TTL, session: requests.Session = None) -> Dict[str, Any]:
    return cache_json(path, ttl_seconds, lambda: fetch_bootstrap_static(session))
