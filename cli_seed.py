from __future__ import annotations
from pathlib import Path

from mailing_labels.config import load_config
from mailing_labels.db import connect, init_db, clear_table, upsert_offices
from mailing_labels.simulate import generate_offices

import dotenv
dotenv.load_dotenv()

"""
Seed the office workbook with sample partner and discovered offices.
1) load data/config.default.json for the workbook path;
2) clear the offices table;
3) write generated offices covering the address and office-name shapes the pipeline handles;
4) print counts and point at cli_export.
"""

def main():
    root = Path(__file__).resolve().parent
    data_dir = root / "data"
    cfg = load_config(data_dir / "config.default.json")

    conn = connect(cfg.db_path)
    init_db(conn)
    clear_table(conn, "offices")

    offices = generate_offices(n_partner=24, n_discovered=8, seed=7)
    n = upsert_offices(conn, offices)

    print(f"Office workbook: {cfg.db_path}")
    print(f"Inserted offices: {n}")
    print("Next: python cli_export.py --out out/")

if __name__ == "__main__":
    main()
