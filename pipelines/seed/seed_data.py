"""
Seed data generator — creates a realistic general-ledger table for local dev.

Generates ~2 000 GL lines across a handful of companies, wells, vendors and
accounts, spread over 24 month-end periods, and writes them to the table
named by ``GL_TABLE`` at ``DB_URL`` (defaults to a SQLite file).

Run:  DB_URL=sqlite:///gl_dev.db GL_DATABASE= GL_SCHEMA= python -m pipelines.seed.seed_data
"""
from __future__ import annotations

import calendar
import os
import random
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from faker import Faker
from sqlalchemy import (
    Column, Date, Float, Integer, MetaData, String, Table, create_engine,
)

# ── Load .env from project root ─────────────────────────
_PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(_PROJECT_ROOT / ".env")

fake = Faker()
Faker.seed(42)
random.seed(42)

# ── Tunables ─────────────────────────────────────────────
NUM_LINES = 2_000
NUM_PERIODS = 24
FIRST_PERIOD = date(2024, 1, 31)

COMPANIES = [(1, "Stick Energy LLC"), (2, "Stick Midstream LP"), (3, "Stick Royalty Co")]
SYSTEM_CODES = ["AP", "AR", "GL", "JIB", "REV"]
ACCOUNTS = [
    (6100, "LOE - Electric"),
    (6110, "LOE - Pumping"),
    (6120, "LOE - Chemicals"),
    (6130, "LOE - Water Disposal"),
    (6200, "Workover Expense"),
    (4100, "Oil Revenue"),
    (4200, "Gas Revenue"),
    (1200, "Accounts Receivable"),
]
DESCRIPTIONS = [
    "Monthly electric service", "Pump repair", "Chemical treatment",
    "Saltwater hauling", "Rod pump replacement", "Compressor rental",
    "Wellhead maintenance", "Gas sales", "Oil sales",
]


def _month_end(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def _periods() -> list[date]:
    out = [FIRST_PERIOD]
    while len(out) < NUM_PERIODS:
        out.append(_month_end(out[-1] + timedelta(days=1)))
    return out


def generate_rows(n: int = NUM_LINES) -> list[dict[str, Any]]:
    """Return *n* synthetic GL lines keyed by S3_GL column names."""
    periods = _periods()
    wells = [(f"W{1000 + i}", f"{fake.last_name()} {random.randint(1, 40)}H") for i in range(40)]
    vendors = [fake.company() for _ in range(25)]
    purchasers = [(f"P{100 + i}", fake.company()) for i in range(5)]

    rows: list[dict[str, Any]] = []
    for i in range(n):
        co_id, co_name = random.choice(COMPANIES)
        well_code, well_name = random.choice(wells)
        acct_id, acct_name = random.choice(ACCOUNTS)
        period = random.choice(periods)
        purch_id, purch_name = random.choice(purchasers)
        is_revenue = acct_id < 5000
        rows.append({
            "UTM_ID": i + 1,
            "CO_ID": co_id,
            "NAME": co_name,
            "WELLCODE": well_code,
            "WELL_NAME": well_name,
            "PER_END_DATE": period,
            "POSTING_DATE": period - timedelta(days=random.randint(0, 20)),
            "LOS_PRODUCTIONDATE": period.replace(day=1),
            "SYSTEM_CODE": random.choice(SYSTEM_CODES),
            "VOUCHER": f"JE{random.randint(10000, 99999)}",
            "VENDORNAME": None if is_revenue else random.choice(vendors),
            "AFE_ID": f"AFE{random.randint(100, 999)}" if random.random() < 0.2 else None,
            "PURCH_ID": purch_id if is_revenue else None,
            "PURCHNAME": purch_name if is_revenue else None,
            "ACCT_ID": acct_id,
            "ACCTNAME": acct_name,
            "QUANTITY": round(random.uniform(10, 5_000), 2) if is_revenue else None,
            "BALANCE": round(random.uniform(-25_000, 25_000) if is_revenue else random.uniform(50, 15_000), 2),
            "DESCRIPTION": random.choice(DESCRIPTIONS),
            "ANNOTATION": fake.sentence(nb_words=6) if random.random() < 0.3 else None,
            "LAST_CHANGE_BY": fake.user_name(),
            "CREATED_BY": fake.user_name(),
        })
    return rows


def gl_table(metadata: MetaData, name: str, schema: str | None = None) -> Table:
    return Table(
        name, metadata,
        Column("UTM_ID", Integer, primary_key=True),
        Column("CO_ID", Integer), Column("NAME", String(120)),
        Column("WELLCODE", String(20)), Column("WELL_NAME", String(120)),
        Column("PER_END_DATE", Date), Column("POSTING_DATE", Date),
        Column("LOS_PRODUCTIONDATE", Date), Column("SYSTEM_CODE", String(10)),
        Column("VOUCHER", String(20)), Column("VENDORNAME", String(120)),
        Column("AFE_ID", String(20)), Column("PURCH_ID", String(20)),
        Column("PURCHNAME", String(120)), Column("ACCT_ID", Integer),
        Column("ACCTNAME", String(120)), Column("QUANTITY", Float),
        Column("BALANCE", Float), Column("DESCRIPTION", String(255)),
        Column("ANNOTATION", String(255)), Column("LAST_CHANGE_BY", String(60)),
        Column("CREATED_BY", String(60)),
        schema=schema,
    )


def main() -> None:
    url = os.getenv("DB_URL", "sqlite:///gl_dev.db")
    table_name = os.getenv("GL_TABLE", "S3_GL")
    schema = os.getenv("GL_SCHEMA") or None

    engine = create_engine(url)
    metadata = MetaData()
    table = gl_table(metadata, table_name, schema)

    print(f"Seeding {NUM_LINES} GL lines into {table.fullname} at {engine.url.render_as_string()}")
    metadata.drop_all(engine, tables=[table])
    metadata.create_all(engine, tables=[table])
    with engine.begin() as conn:
        conn.execute(table.insert(), generate_rows())
    print("Done.")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:
        print(f"Seeding failed: {exc}", file=sys.stderr)
        sys.exit(1)
