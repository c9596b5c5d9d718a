from __future__ import annotations

import csv
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ..utils.errors import CatalogueError
from ..utils.rules import POSITION_NAMES, ROLE_ORDER, Item

log = logging.getLogger("squad.catalogue")

# --- Role / column vocabularies ----------------------------------------------

ROLE_ALIASES = {
    "GK": ["P", "POR", "PORTIERE", "GK", "GKP", "GOALKEEPER"],
    "DEF": ["D", "DC", "DD", "DS", "E", "B", "DEF", "DEFENDER"],
    "MID": ["C", "M", "T", "MED", "MID", "MIDFIELDER"],
    "FWD": ["A", "W", "PC", "ATT", "FWD", "FORWARD"],
}
_ROLE_LOOKUP = {alias: role for role, aliases in ROLE_ALIASES.items() for alias in aliases}

NAME_COLS = ["nome", "giocatore", "calciatore", "name", "player", "web_name"]
TEAM_COLS = ["squadra", "team", "club", "team_short", "team_name"]
ROLE_COLS = ["r", "ruolo", "role", "pos", "position"]
ROLE_MANTRA_COLS = ["rm", "ruolo mantra", "mantra"]
PRICE_COLS = ["fvm", "fvm m", "quotazione fvm", "price", "cost", "now_cost"]
ID_COLS = ["id"]

HEADER_SCAN_ROWS = 40
FALLBACK_PRICE_COL = 11  # column L
PREFERRED_SHEETS = re.compile(r"tutti|quot|list", re.IGNORECASE)


def normalize_role(raw: Any) -> Optional[str]:
    """Map a free-form role label (or FPL element_type) onto ROLE_ORDER."""
    if raw is None:
        return None
    if isinstance(raw, (int, float)) and not pd.isna(raw):
        return POSITION_NAMES.get(int(raw))
    key = str(raw).strip().upper()
    if key.isdigit():
        return POSITION_NAMES.get(int(key))
    return _ROLE_LOOKUP.get(key)


def to_price(raw: Any) -> Optional[int]:
    """'12,5' -> 13; blanks, text and non-positive values -> None."""
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.replace(",", ".").replace(" ", "").strip()
    value = pd.to_numeric(raw, errors="coerce")
    if pd.isna(value):
        return None
    price = int(round(float(value)))
    return price if price > 0 else None


def _text(x: Any) -> str:
    if x is None or (isinstance(x, float) and pd.isna(x)):
        return ""
    return str(x).strip()


# --- Builders -----------------------------------------------------------------

def items_from_records(records: Iterable[Dict[str, Any]]) -> List[Item]:
    """
    Rows with name/team/role/price (and optional id) -> Items.
    Unusable rows are skipped; repeated ids keep the first row.
    """
    out: List[Item] = []
    seen = set()
    skipped = 0
    for rec in records:
        name = _text(rec.get("name"))
        team = _text(rec.get("team"))
        role = normalize_role(rec.get("role"))
        price = to_price(rec.get("price"))
        if not name or not team or role is None or price is None:
            skipped += 1
            continue
        item_id = _text(rec.get("id")) or re.sub(r"\s+", "_", f"{role}-{name}-{team}")
        if item_id in seen:
            skipped += 1
            continue
        seen.add(item_id)
        out.append(Item(id=item_id, role=role, price=price, name=name, team=team))
    if skipped:
        log.info("Skipped %d unusable catalogue rows", skipped)
    return out


def items_from_frame(df: pd.DataFrame) -> List[Item]:
    """DataFrame with name/team/role/price columns (any case) -> Items."""
    cols = {str(c).strip().lower(): c for c in df.columns}

    def pick(options: Sequence[str]) -> Optional[Any]:
        return next((cols[o] for o in options if o in cols), None)

    mapping = {
        "id": pick(ID_COLS),
        "name": pick(NAME_COLS),
        "team": pick(TEAM_COLS),
        "role": pick(ROLE_COLS) or pick(ROLE_MANTRA_COLS),
        "price": pick(PRICE_COLS),
    }
    missing = [k for k in ("name", "team", "role", "price") if mapping[k] is None]
    if missing:
        raise CatalogueError(f"catalogue is missing columns: {', '.join(missing)}")

    frame = pd.DataFrame({k: df[v] for k, v in mapping.items() if v is not None})
    return items_from_records(frame.to_dict(orient="records"))


def _find_header(rows: pd.DataFrame) -> Optional[int]:
    for i in range(min(HEADER_SCAN_ROWS, len(rows))):
        r = {_text(x).lower() for x in rows.iloc[i].tolist()}
        if (r & set(NAME_COLS)) and (r & set(TEAM_COLS)) and (r & set(ROLE_COLS + ROLE_MANTRA_COLS)):
            return i
    return None


def _items_from_raw_sheet(rows: pd.DataFrame) -> List[Item]:
    """Sheet read with header=None: locate the header row, then parse below it."""
    hi = _find_header(rows)
    if hi is None:
        return []
    header = [_text(x).lower() for x in rows.iloc[hi].tolist()]

    def find(labels: Sequence[str]) -> int:
        return next((j for j, h in enumerate(header) if h in labels), -1)

    idx_r, idx_rm = find(ROLE_COLS), find(ROLE_MANTRA_COLS)
    idx_n, idx_t = find(NAME_COLS), find(TEAM_COLS)
    idx_p = find(PRICE_COLS)
    if idx_p < 0:
        idx_p = FALLBACK_PRICE_COL
    idx_id = find(ID_COLS)

    def cell(row: List[Any], j: int) -> Any:
        return row[j] if 0 <= j < len(row) else None

    records = []
    for _, raw in rows.iloc[hi + 1:].iterrows():
        row = raw.tolist()
        records.append({
            "id": cell(row, idx_id),
            "name": cell(row, idx_n),
            "team": cell(row, idx_t),
            "role": cell(row, idx_r if idx_r >= 0 else idx_rm),
            "price": cell(row, idx_p),
        })
    return items_from_records(records)


def _read_csv_rows(path: Path) -> pd.DataFrame:
    """Every line as one row of strings; title lines may be shorter than the header."""
    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            rows = [r for r in csv.reader(f) if any(c.strip() for c in r)]
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise CatalogueError(f"{path.name}: unreadable CSV ({e})") from e
    # short rows are padded with None
    return pd.DataFrame(rows)


def load_catalogue(path: str | Path) -> List[Item]:
    """
    Read a CSV or Excel listing into Items. Excel sheets named like
    'Tutti'/'Quotazioni'/'Lista' are tried before the rest.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in (".xlsx", ".xls", ".csv"):
        raise CatalogueError(f"unsupported catalogue format: {path.suffix or path.name}")
    if not path.is_file():
        raise CatalogueError(f"catalogue not found: {path}")
    if suffix in (".xlsx", ".xls"):
        try:
            sheets: Dict[str, pd.DataFrame] = pd.read_excel(path, sheet_name=None, header=None)
        except (OSError, ValueError) as e:
            raise CatalogueError(f"{path.name}: unreadable workbook ({e})") from e
        names = [n for n in sheets if PREFERRED_SHEETS.search(str(n))] + list(sheets)
        for name in names:
            items = _items_from_raw_sheet(sheets[name])
            if items:
                log.info("Loaded %d items from sheet %r of %s", len(items), name, path.name)
                return sorted(items, key=lambda p: -p.price)
    else:
        items = _items_from_raw_sheet(_read_csv_rows(path))
        if items:
            log.info("Loaded %d items from %s", len(items), path.name)
            return sorted(items, key=lambda p: -p.price)
    raise CatalogueError(f"{path.name}: no sheet with name/team/role/price columns and valid rows")


def items_from_fpl(bootstrap: Dict[str, Any]) -> List[Item]:
    """Live FPL payload -> Items; price is now_cost (tenths of £m)."""
    elements = pd.DataFrame(bootstrap.get("elements", []))
    teams = pd.DataFrame(bootstrap.get("teams", []))
    if elements.empty:
        return []
    for c, default in {"web_name": "", "team": 0, "element_type": 0, "now_cost": 0}.items():
        if c not in elements.columns:
            elements[c] = default

    team_name_map = {}
    if not teams.empty and "id" in teams.columns and "short_name" in teams.columns:
        team_name_map = dict(zip(teams["id"], teams["short_name"]))

    frame = pd.DataFrame({
        "id": elements["id"].astype(str) if "id" in elements.columns else None,
        "name": elements["web_name"],
        "team": elements["team"].map(team_name_map).fillna(elements["team"].astype(str)),
        "role": elements["element_type"],
        "price": elements["now_cost"],
    })
    return items_from_records(frame.to_dict(orient="records"))


def catalogue_summary(items: Sequence[Item]) -> pd.DataFrame:
    """Per-role count and min/median/max price."""
    df = pd.DataFrame([p.to_dict() for p in items], columns=["id", "name", "team", "role", "price"])
    summary = (
        df.groupby("role")["price"]
        .agg(count="count", min="min", median="median", max="max")
        .reindex(list(ROLE_ORDER))
    )
    summary["count"] = summary["count"].fillna(0).astype(int)
    return summary.reset_index()
