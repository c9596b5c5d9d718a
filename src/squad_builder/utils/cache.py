import json, logging, os, tempfile, time
from typing import Callable, Any

log = logging.getLogger("squad.cache")

def cache_json(path: str, ttl_seconds: int, loader: Callable[[], Any]) -> Any:
    """
    Tiny disk cache for JSON-able payloads.
    If the file exists and is fresher than ttl_seconds, return it.
    Otherwise call loader(), write the result, and return it.
    """
    if os.path.exists(path):
        age = time.time() - os.path.getmtime(path)
        if age < ttl_seconds:
            try:
                return load_json(path)
            except (OSError, ValueError) as e:
                log.warning("Ignoring unreadable cache %s: %s", path, e)

    data = loader()

    try:
        save_json(path, data)
    except OSError as e:
        # best-effort cache; still return data
        log.warning("Could not write cache %s: %s", path, e)

    return data

def load_json(path: str, default: Any = None) -> Any:
    if default is not None and not os.path.exists(path):
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

def save_json(path: str, data: Any) -> None:
    # readers never see a partial file; each call writes its own temp file
    folder = os.path.dirname(os.path.abspath(path))
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=folder, suffix=".tmp", delete=False) as f:
        tmp = f.name
        json.dump(data, f, indent=2)
    try:
        os.replace(tmp, path)
    except OSError:
        os.unlink(tmp)
        raise
