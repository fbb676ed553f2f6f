#!/usr/bin/env python
from __future__ import annotations

import argparse
from pathlib import Path

from openpyxl import Workbook

HEADER = ["OAID", "Long Description", "Region", "REG Alias"]

DESCRIPTIONS = [
    "AC SPLIT 1 PK",
    "AC SPLIT 2 PK",
    "Cable Tray 3m",
    "Rectifier Module 48V",
    "Battery Bank 100Ah",
    "Grounding Kit",
]


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a sample OAID catalog workbook")
    parser.add_argument("--output", required=True, help="Output file path (.xlsx)")
    parser.add_argument(
        "--region",
        action="append",
        dest="regions",
        help="Region to include (repeatable, default JAKARTA and SURABAYA)",
    )
    args = parser.parse_args()
    regions = args.regions or ["JAKARTA", "SURABAYA"]

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Catalog"
    sheet.append(HEADER)
    serial = 100
    for region in regions:
        for description in DESCRIPTIONS:
            sheet.append([f"OA-{serial}", description, region, region[:3]])
            serial += 1
    workbook.save(output)

    print(f"sample catalog written: {output}")


if __name__ == "__main__":
    main()
