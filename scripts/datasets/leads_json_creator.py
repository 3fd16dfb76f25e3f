# -*- coding: utf-8 -*-
"""
Lead spreadsheet to lead import payload (POST /api/v1/leads/import)
Accepts: .xlsx / .xlsm / .csv / .tsv

Python 3.10+
Requires: pandas, openpyxl

Expected columns (same as the bulk upload sample CSV):
name, email, phone, source, status, tags, notes, budget,
travelStartDate, travelEndDate, destination, accommodation, activities
"""

from __future__ import annotations

import json
import re
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd


# ===== CONFIG =====
DEFAULT_CURRENCY = "USD"
# rows over this size are split into several payload files
MAX_LEADS_PER_FILE = 5000


# ===== HELPERS =====
def to_str(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, float) and pd.isna(v):
        return ""
    return str(v).strip()


def nullable(v: Any) -> Optional[str]:
    s = to_str(v)
    return s if s else None


def lower_nullable(v: Any) -> Optional[str]:
    s = to_str(v)
    return s.lower() if s else None


def normalize_spaces(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip()


def split_list(raw_value: Any) -> list[str]:
    """
    'beach, diving ; spa' -> ['beach', 'diving', 'spa']
    """
    s = normalize_spaces(to_str(raw_value))
    if not s:
        return []
    return [p.strip() for p in re.split(r"\s*[,;|]\s*", s) if p.strip()]


def parse_budget(v: Any) -> Optional[float]:
    s = to_str(v).replace(",", "")
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def duplicate_key(email: Optional[str], phone: Optional[str]) -> Optional[str]:
    if email:
        return email.lower()
    digits = re.sub(r"\D", "", phone or "")
    return digits or None


def row_to_lead(row: pd.Series) -> Optional[Dict[str, Any]]:
    name = nullable(row.get("name"))
    email = lower_nullable(row.get("email"))
    phone = nullable(row.get("phone"))

    # skip blank rows
    if not name and not email and not phone:
        return None

    travel: Dict[str, Any] = {}
    destination = nullable(row.get("destination"))
    if destination:
        travel["destination"] = destination
    start = nullable(row.get("travelStartDate"))
    end = nullable(row.get("travelEndDate"))
    if start or end:
        travel["dates"] = {"start": start, "end": end}
    budget = parse_budget(row.get("budget"))
    if budget is not None:
        travel["budget"] = {"value": budget, "currency": DEFAULT_CURRENCY}
    accommodation = nullable(row.get("accommodation"))
    if accommodation:
        travel["accommodation"] = accommodation
    activities = split_list(row.get("activities"))
    if activities:
        travel["activities"] = activities

    lead: Dict[str, Any] = {
        "fullName": name,
        "email": email,
        "phone": phone,
        "status": lower_nullable(row.get("status")),
        "source": lower_nullable(row.get("source")),
        "tags": split_list(row.get("tags")) or None,
        "notes": nullable(row.get("notes")),
        "travelDetails": travel or None,
        "duplicateKey": duplicate_key(email, phone),
    }
    return {k: v for k, v in lead.items() if v is not None}


def load_table(input_path: Path) -> pd.DataFrame:
    suffix = input_path.suffix.lower()

    if suffix in [".xlsx", ".xlsm", ".xls"]:
        return pd.read_excel(input_path, dtype=str)

    if suffix == ".csv":
        return pd.read_csv(input_path, dtype=str, sep=None, engine="python")

    if suffix in [".tsv", ".txt"]:
        return pd.read_csv(input_path, dtype=str, sep="\t")

    raise ValueError(f"Unsupported format: {suffix}")


def convert(input_file: str, output_file: str, created_by: Optional[str] = None) -> list[Path]:
    path = Path(input_file)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    df = load_table(path)
    df.columns = [normalize_spaces(str(c)) for c in df.columns]

    leads = []
    skipped = 0
    for _, row in df.iterrows():
        lead = row_to_lead(row)
        if lead is None:
            skipped += 1
            continue
        leads.append(lead)

    # ===== DEDUP BY duplicateKey =====
    # keeps the LAST occurrence of each key
    dedup: dict[str, Dict[str, Any]] = {}
    no_key: list[Dict[str, Any]] = []
    for lead in leads:
        key = lead.get("duplicateKey")
        if not key:
            no_key.append(lead)
            continue
        dedup[key] = lead
    unique_leads = list(dedup.values()) + no_key

    out_path = Path(output_file)
    written: list[Path] = []
    chunks = [unique_leads[i : i + MAX_LEADS_PER_FILE] for i in range(0, len(unique_leads), MAX_LEADS_PER_FILE)]
    for n, chunk in enumerate(chunks or [[]], start=1):
        payload = {
            "importId": uuid.uuid4().hex,
            "createdBy": created_by,
            "leads": chunk,
        }
        target = out_path if len(chunks) <= 1 else out_path.with_name(f"{out_path.stem}_{n}{out_path.suffix}")
        target.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        written.append(target)

    print(f"JSON written: {', '.join(str(p) for p in written)}")
    print(f"Rows read: {len(df)} (blank skipped: {skipped})")
    print(f"Leads after dedup by duplicateKey: {len(unique_leads)}")
    return written


if __name__ == "__main__":
    # Usage:
    # python leads_json_creator.py leads.csv leads_import.json [created_by]
    if len(sys.argv) < 3:
        print("Usage: python leads_json_creator.py <input_file> <output.json> [created_by]")
        sys.exit(1)

    convert(sys.argv[1], sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else None)
