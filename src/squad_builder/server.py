# src/squad_builder/server.py
from __future__ import annotations

import csv
import io
import logging
import math
import os
import threading
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from squad_builder.data.catalogue import catalogue_summary, items_from_fpl, load_catalogue
from squad_builder.data.fpl_api import cached_bootstrap
from squad_builder.features.builder import build_squad, deadline_predicate
from squad_builder.features.memory import ProposalMemory, load_memory, save_memory
from squad_builder.features.placement import parse_formation, place_lineup
from squad_builder.utils.errors import (
    AttemptExhausted, ConfigError, Infeasible, SearchCancelled,
)
from squad_builder.utils.rules import (
    ATTEMPTS, LEFTOVER_MAX, MEMORY_SIZE, ROLE_TOLERANCE, BuilderConfig, Item, parse_role_map,
    DEFAULT_TARGETS, REQUIRED_COUNTS,
)

# ----------------------------- Logging ---------------------------------------
logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
log = logging.getLogger("squad.server")

CATALOGUE_ENV = "SQUAD_CATALOGUE"
MEMORY_ENV = "SQUAD_MEMORY_PATH"
FPL_CACHE_ENV = "SQUAD_FPL_CACHE"

# ----------------------------- Data loader -----------------------------------
def _load_items() -> List[Item]:
    path = os.environ.get(CATALOGUE_ENV)
    if path:
        log.info("Loading catalogue from %s …", path)
        items = load_catalogue(path)
    else:
        log.info("Fetching bootstrap-static …")
        items = items_from_fpl(cached_bootstrap(os.environ.get(FPL_CACHE_ENV, "fpl_bootstrap.json")))
    log.info("Loaded catalogue: %s items", len(items))
    return items


@lru_cache(maxsize=1)
def _get_catalogue() -> List[Item]:
    return _load_items()


def _reload_catalogue():
    _get_catalogue.cache_clear()  # type: ignore[attr-defined]
    _get_catalogue()


def _init_memory() -> ProposalMemory:
    path = os.environ.get(MEMORY_ENV)
    if path:
        try:
            return load_memory(path, MEMORY_SIZE)
        except (OSError, ValueError) as e:
            log.warning("Starting with empty proposal memory (%s): %s", path, e)
    return ProposalMemory(MEMORY_SIZE)


# one per process; ProposalMemory serializes its own access
MEMORY = _init_memory()
# snapshot + write happen together so the file never goes back to an older state
_SAVE_LOCK = threading.Lock()


def _persist_memory() -> None:
    path = os.environ.get(MEMORY_ENV)
    if not path:
        return
    try:
        with _SAVE_LOCK:
            save_memory(path, MEMORY)
    except OSError as e:
        log.warning("Could not persist proposal memory to %s: %s", path, e)


# ---------------------------------- App --------------------------------------
app = FastAPI(title="Squad Builder", version="1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", include_in_schema=False)
def health() -> Dict[str, Any]:
    ok_catalogue = True
    try:
        ok_catalogue = bool(_get_catalogue())
    except Exception:
        log.exception("Catalogue not available")
        ok_catalogue = False
    return {
        "ok": True,
        "catalogue_loaded": ok_catalogue,
        "memory": len(MEMORY),
    }


@app.post("/reload-data", include_in_schema=False)
def reload_data() -> Dict[str, Any]:
    try:
        _reload_catalogue()
        return {"ok": True, "reloaded": True}
    except Exception as e:
        log.exception("Reload failed")
        raise HTTPException(status_code=500, detail=f"Reload failed: {e}")


@app.delete("/memory")
def clear_memory() -> Dict[str, Any]:
    MEMORY.clear()
    _persist_memory()
    return {"ok": True, "memory": 0}


# --------------------------------- Helpers -----------------------------------
def _to_csv(rows: Sequence[Dict[str, Any]]) -> str:
    if not rows:
        return ""
    cols = list(rows[0].keys())
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=cols)
    writer.writeheader()
    for r in rows:
        writer.writerow({k: r.get(k, "") for k in cols})
    return buf.getvalue()


def _wants_csv(request: Request, fmt: str | None) -> bool:
    if fmt and fmt.lower() == "csv":
        return True
    accept = request.headers.get("accept", "")
    return "text/csv" in accept.lower()


def _json_sanitize(obj):
    """Recursively convert NaN/Inf -> None and numpy/pandas scalars -> py scalars."""
    if isinstance(obj, np.generic):
        obj = obj.item()

    # primitives
    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None
    if obj is None or isinstance(obj, (int, str, bool)):
        return obj

    # containers
    if isinstance(obj, Mapping):
        return {k: _json_sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_sanitize(v) for v in obj]

    # everything else -> string
    return str(obj)


def _catalogue_or_500() -> List[Item]:
    try:
        return _get_catalogue()
    except Exception as e:
        log.exception("Catalogue load error")
        raise HTTPException(status_code=500, detail=f"Catalogue not loaded: {e}") from e


# ---------------------------------- API --------------------------------------
@app.get("/catalogue/summary")
def api_catalogue_summary():
    items = _catalogue_or_500()
    return JSONResponse(_json_sanitize({"roles": catalogue_summary(items).to_dict(orient="records")}))


@app.get("/build")
def api_build(
    request: Request,
    budget: int = Query(...),
    targets: str = Query(",".join(f"{k}:{v:g}" for k, v in DEFAULT_TARGETS.items())),
    counts: str = Query(",".join(f"{k}:{v}" for k, v in REQUIRED_COUNTS.items())),
    squad_size: int | None = Query(None),
    tolerance: float = Query(ROLE_TOLERANCE, ge=0, le=1),
    leftover: int = Query(LEFTOVER_MAX, ge=0),
    attempts: int = Query(ATTEMPTS, ge=1, le=1000),
    seed: int | None = Query(None),
    strict: bool = Query(False),
    timeout: float | None = Query(None, gt=0),
    formation: str | None = Query(None),
    format: str | None = Query(None),
):
    try:
        role_counts = {k: int(v) for k, v in parse_role_map(counts).items()}
        config = BuilderConfig(
            budget=budget,
            role_requirements=role_counts,
            role_targets=parse_role_map(targets, cast=float),
            squad_size=squad_size if squad_size is not None else sum(role_counts.values()),
            tolerance=tolerance,
            leftover_tolerance=leftover,
            attempts=attempts,
        ).validate()
        if formation:
            parse_formation(formation)
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    items = _catalogue_or_500()

    try:
        res = build_squad(
            items, config, memory=MEMORY, rng=np.random.default_rng(seed),
            allow_degraded=not strict, should_stop=deadline_predicate(timeout),
        )
        payload = res.to_dict()
        if formation:
            payload["lineup"] = place_lineup(res.squad, formation).to_dict()
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except (Infeasible, AttemptExhausted) as e:
        log.warning("Build failed: %s", e)
        raise HTTPException(status_code=422, detail=str(e)) from e
    except SearchCancelled as e:
        raise HTTPException(status_code=408, detail=str(e)) from e

    if res.accepted:
        _persist_memory()
    log.info("Built squad: status=%s total=%d", res.status, res.total_spend)

    if _wants_csv(request, format):
        return PlainTextResponse(
            content=_to_csv(payload["squad"]),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="squad.csv"'},
        )

    return JSONResponse(_json_sanitize(payload))
