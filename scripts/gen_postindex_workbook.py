#!/usr/bin/env python3
"""Synthetic post index workbook generator.

Writes an ``.xlsx`` laid out like the Ukrposhta export: the first row holds the
exact header labels of ``post_info`` (see ``postindex_sync.models.post_index``),
data starts on row 2. Region/district/settlement labels repeat from small pools
so the dictionaries stay realistic in size.

Useful for chunk size experiments and for local runs without the real file.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

from postindex_sync.models.post_index import POST_INFO_SCHEMA

REGIONS = [
    ("Київська", "Kyivska"),
    ("Львівська", "Lvivska"),
    ("Одеська", "Odeska"),
    ("Харківська", "Kharkivska"),
    ("Полтавська", "Poltavska"),
]


def generate_rows(rows: int, seed: int = 42) -> pd.DataFrame:
    """Build ``rows`` records keyed by sequential five digit office codes.

    Args:
        rows: number of data rows (at most 99999)
        seed: random seed for reproducible label choice
    """
    rng = np.random.default_rng(seed)
    region_idx = rng.integers(0, len(REGIONS), rows)
    district_no = rng.integers(1, 12, rows)
    settlement_no = rng.integers(1, 400, rows)

    data: dict[str, list[object]] = {}
    for f in POST_INFO_SCHEMA.mapped_fields:
        data[f.source_label] = []  # type: ignore[index]

    labels = {f.name: f.source_label for f in POST_INFO_SCHEMA.mapped_fields}
    for i in range(rows):
        ukr, en = REGIONS[region_idx[i]]
        code = f"{i + 1:05d}"
        values = {
            "post_office_id": code,
            "region_ukr_id": ukr,
            "district_old_ukr_id": f"{ukr} р-н {district_no[i]}",
            "district_new_ukr_id": f"{ukr} новий р-н {district_no[i] % 4}",
            "settlement_ukr_id": f"с. {settlement_no[i]}",
            "postal_code": code,
            "region_en_id": en,
            "district_new_en_id": f"{en} district {district_no[i] % 4}",
            "settlement_en_id": f"village {settlement_no[i]}",
            "post_office_ukr": f"ВПЗ {code}",
            "post_office_en": f"Post office {code}",
        }
        for name, label in labels.items():
            data[label].append(values[name])  # type: ignore[index]
    return pd.DataFrame(data)


def create_workbook(output_path: Path, rows: int, seed: int = 42) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df = generate_rows(rows, seed)
    # codes stay text so leading zeros survive the round trip
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="postindex", index=False)

    print(f"Created workbook: {output_path}")
    print(f"  Rows: {rows} (+ 1 header row)")
    print(f"  Columns: {len(df.columns)}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic post index workbook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/postindex.xlsx
  %(prog)s data/large.xlsx --rows 30000 --seed 7
        """,
    )
    parser.add_argument("output", type=Path, help="Output workbook path")
    parser.add_argument("--rows", type=int, default=12_000, help="Data rows (default: 12,000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--dry-run", action="store_true", help="Show the plan without writing")
    args = parser.parse_args()

    if not 0 < args.rows <= 99_999:
        print("Error: --rows must be between 1 and 99999", file=sys.stderr)
        return 1

    print("Workbook generation plan:")
    print(f"  Output file: {args.output}")
    print(f"  Rows: {args.rows:,}")
    print(f"  Random seed: {args.seed}")
    if args.dry_run:
        print("\n[DRY RUN] Would generate the workbook but not creating it.")
        return 0

    try:
        create_workbook(args.output, args.rows, args.seed)
    except OSError as e:
        print(f"\nError generating workbook: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
