from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .models import LABEL_FIELDS, LabelEdit, RawOfficeRecord, SOURCES, TIERS

TABLE_SCHEMAS: Dict[str, List[str]] = {
    "offices": ["id", "name", "address", "tier", "source", "created_at", "updated_at"],
    # `fields` lists the overridden columns, so a field edited to blank survives the round trip
    "label_edits": ["office_id", "fields", *LABEL_FIELDS, "updated_at"],
}

# read back as text so ZIP codes keep their leading zeros
TEXT_COLUMNS: Dict[str, Any] = {"id": str, "address": object, "office_id": str, "fields": str, **{f: str for f in LABEL_FIELDS}}

def _now_str() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")

def _empty_table(name: str) -> pd.DataFrame:
    return pd.DataFrame(columns=TABLE_SCHEMAS[name])

def _ensure_columns(df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    result = df.copy()
    for col in columns:
        if col not in result.columns:
            result[col] = None
    return result[columns]

def _clean_value(val: Any) -> Any:
    if val is None:
        return None
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        pass
    return val

def _row_to_dict(row: pd.Series) -> Dict[str, Any]:
    return {k: _clean_value(v) for k, v in row.to_dict().items()}

def _row_to_office(row: Dict[str, Any]) -> RawOfficeRecord:
    address = row.get("address")
    return RawOfficeRecord(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        address=str(address) if address is not None else None,
        tier=row.get("tier"),
        source=row.get("source") or "partner",
    )

class ExcelConnection:
    """Excel-workbook store: one DataFrame per table, cached in memory, written back on save()."""
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.tables: Dict[str, pd.DataFrame] = {
            name: _empty_table(name) for name in TABLE_SCHEMAS
        }
        if self.path.exists():
            with pd.ExcelFile(self.path) as xls:
                for name, cols in TABLE_SCHEMAS.items():
                    if name in xls.sheet_names:
                        dtype = {c: t for c, t in TEXT_COLUMNS.items() if c in cols}
                        df = pd.read_excel(xls, sheet_name=name, dtype=dtype)
                        self.tables[name] = _ensure_columns(df, cols)

    def save(self) -> None:
        with pd.ExcelWriter(self.path, engine="openpyxl") as writer:
            for name, df in self.tables.items():
                df.to_excel(writer, sheet_name=name, index=False)

def connect(db_path: str | Path) -> ExcelConnection:
    return ExcelConnection(db_path)

def init_db(conn: ExcelConnection) -> None:
    conn.save()

def _upsert_row(df: pd.DataFrame, row: Dict[str, Any], key_field: str) -> pd.DataFrame:
    mask = df[key_field].astype(str) == str(row[key_field])
    if mask.any():
        idx = df.index[mask][0]
        for col in df.columns:
            df.at[idx, col] = row.get(col)
        return df
    new_row = pd.DataFrame([row], columns=df.columns)
    if df.empty:
        return new_row.reset_index(drop=True)
    return pd.concat([df, new_row], ignore_index=True)

def clear_table(conn: ExcelConnection, table: str) -> None:
    if table not in TABLE_SCHEMAS:
        raise ValueError(f"Unknown table: {table}")
    conn.tables[table] = _empty_table(table)
    conn.save()

def upsert_office(conn: ExcelConnection, office: RawOfficeRecord, save: bool = True) -> None:
    if office.source not in SOURCES:
        raise ValueError(f"Unknown office source: {office.source}")
    if office.tier is not None and office.tier not in TIERS:
        raise ValueError(f"Unknown tier: {office.tier}")
    df = conn.tables["offices"]
    now = _now_str()
    row = {
        "id": str(office.id),
        "name": office.name,
        "address": office.address,
        "tier": office.tier,
        "source": office.source,
        "created_at": now,
        "updated_at": now,
    }
    mask = df["id"].astype(str) == str(office.id)
    if mask.any():
        row["created_at"] = _clean_value(df.loc[mask, "created_at"].iloc[0])
    conn.tables["offices"] = _upsert_row(df, row, "id")
    if save:
        conn.save()

def upsert_offices(conn: ExcelConnection, offices: Iterable[RawOfficeRecord]) -> int:
    n = 0
    for office in offices:
        upsert_office(conn, office, save=False)
        n += 1
    conn.save()
    return n

def list_offices(conn: ExcelConnection, source: Optional[str] = None) -> List[RawOfficeRecord]:
    df = conn.tables["offices"]
    if source is not None:
        df = df[df["source"] == source]
    return [_row_to_office(_row_to_dict(row)) for _, row in df.iterrows()]

def get_office(conn: ExcelConnection, office_id: str) -> Optional[RawOfficeRecord]:
    df = conn.tables["offices"]
    match = df[df["id"].astype(str) == str(office_id)]
    if match.empty:
        return None
    return _row_to_office(_row_to_dict(match.iloc[0]))

def get_offices(conn: ExcelConnection, office_ids: Iterable[str]) -> List[RawOfficeRecord]:
    wanted = {str(i) for i in office_ids}
    df = conn.tables["offices"]
    match = df[df["id"].astype(str).isin(wanted)]
    return [_row_to_office(_row_to_dict(row)) for _, row in match.iterrows()]

def update_office_address(conn: ExcelConnection, office_id: str, address: str, save: bool = True) -> bool:
    df = conn.tables["offices"]
    mask = df["id"].astype(str) == str(office_id)
    if not mask.any():
        return False
    idx = df.index[mask][0]
    df.at[idx, "address"] = address
    df.at[idx, "updated_at"] = _now_str()
    if save:
        conn.save()
    return True

def _row_to_edit(row: Dict[str, Any]) -> LabelEdit:
    names = [f for f in str(row.get("fields") or "").split(",") if f in LABEL_FIELDS]
    values = {f: str(row[f]) if row.get(f) is not None else "" for f in names}
    return LabelEdit(office_id=str(row["office_id"]), **values)

def list_label_edits(conn: ExcelConnection) -> Dict[str, LabelEdit]:
    df = conn.tables["label_edits"]
    edits = [_row_to_edit(_row_to_dict(row)) for _, row in df.iterrows()]
    return {e.office_id: e for e in edits}

def upsert_label_edit(conn: ExcelConnection, office_id: str, fields: Dict[str, str], save: bool = True) -> LabelEdit:
    """Merge `fields` into the saved edit for one office."""
    unknown = set(fields) - set(LABEL_FIELDS)
    if unknown:
        raise ValueError(f"Unknown label fields: {sorted(unknown)}")
    current = list_label_edits(conn).get(str(office_id))
    merged = current.overrides() if current else {}
    merged.update({f: "" if v is None else str(v) for f, v in fields.items()})
    row: Dict[str, Any] = {
        "office_id": str(office_id),
        "fields": ",".join(f for f in LABEL_FIELDS if f in merged),
        **{f: merged.get(f) for f in LABEL_FIELDS},
        "updated_at": _now_str(),
    }
    conn.tables["label_edits"] = _upsert_row(conn.tables["label_edits"], row, "office_id")
    if save:
        conn.save()
    return _row_to_edit(row)

def upsert_label_edits(conn: ExcelConnection, changes: Dict[str, Dict[str, str]]) -> int:
    for office_id, fields in changes.items():
        upsert_label_edit(conn, office_id, fields, save=False)
    if changes:
        conn.save()
    return len(changes)

def delete_label_edit(conn: ExcelConnection, office_id: str, save: bool = True) -> bool:
    df = conn.tables["label_edits"]
    mask = df["office_id"].astype(str) == str(office_id)
    if not mask.any():
        return False
    conn.tables["label_edits"] = df[~mask].reset_index(drop=True)
    if save:
        conn.save()
    return True
