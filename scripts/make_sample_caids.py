#!/usr/bin/env python
from __future__ import annotations

import argparse
import csv
from pathlib import Path


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a SITE ID list and a SITE_ID,CAID correspondence CSV")
    parser.add_argument("--output-dir", required=True, help="Directory receiving sites.txt and caids.csv")
    parser.add_argument("--count", type=int, default=10, help="Number of sites")
    parser.add_argument("--prefix", default="JKT", help="SITE ID prefix")
    parser.add_argument(
        "--unmatched",
        type=int,
        default=2,
        help="How many trailing sites get no CAID row",
    )
    args = parser.parse_args()

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    site_ids = [f"{args.prefix}-{index:04d}" for index in range(1, args.count + 1)]
    (output_dir / "sites.txt").write_text("\n".join(site_ids) + "\n", encoding="utf-8")

    with (output_dir / "caids.csv").open("w", newline="", encoding="utf-8") as fp:
        writer = csv.writer(fp)
        writer.writerow(["SITE_ID", "CAID"])
        for index, site_id in enumerate(site_ids[: max(args.count - args.unmatched, 0)], start=1):
            writer.writerow([site_id, f"CA{index:06d}"])

    print(f"sample inputs written: {output_dir / 'sites.txt'}, {output_dir / 'caids.csv'}")


if __name__ == "__main__":
    main()
