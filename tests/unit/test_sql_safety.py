"""
Unit tests — SQL safety checker: the gate every generated query passes.
"""
import pytest
from ledger_copilot.copilot.intent import FilterClause, Intent
from ledger_copilot.copilot.sql_generator import RESULT_CAP, synthesize
from ledger_copilot.governance.sql_safety import check_sql_safety
from ledger_copilot.governance.term_resolver import ColumnCatalog

TABLE = "STICK_DB.FINANCIAL.S3_GL"


def _check(sql: str) -> list[str]:
    return check_sql_safety(sql, TABLE, RESULT_CAP)


# ── Helper: a known-safe SQL ─────────────────────────────

_SAFE_SQL = """\
SELECT PER_END_DATE, SUM(BALANCE) AS TOTAL
FROM STICK_DB.FINANCIAL.S3_GL
WHERE (LOWER(DESCRIPTION) LIKE '%pump%' OR LOWER(VENDORNAME) LIKE '%pump%')
  AND CO_ID = 1
GROUP BY PER_END_DATE
ORDER BY PER_END_DATE
LIMIT 100"""


def test_safe_sql_passes():
    errors = _check(_SAFE_SQL)
    assert errors == [], f"Expected no errors but got: {errors}"


def test_table_match_is_case_insensitive():
    assert _check("SELECT * FROM stick_db.financial.s3_gl LIMIT 10") == []


# ── 1. Must start with SELECT ───────────────────────────

def test_not_select():
    errors = _check("INSERT INTO STICK_DB.FINANCIAL.S3_GL VALUES (1)")
    assert any("SELECT" in e for e in errors)


# ── 2. No multi-statement ───────────────────────────────

def test_multi_statement():
    sql = "SELECT * FROM STICK_DB.FINANCIAL.S3_GL LIMIT 10; DROP TABLE users"
    errors = _check(sql)
    assert any("Multi-statement" in e for e in errors)


def test_trailing_semicolon_allowed():
    assert _check("SELECT * FROM STICK_DB.FINANCIAL.S3_GL LIMIT 10;") == []


# ── 3. No dangerous keywords ────────────────────────────

@pytest.mark.parametrize("keyword", [
    "DROP TABLE foo",
    "ALTER TABLE foo ADD col int",
    "TRUNCATE TABLE foo",
    "DELETE FROM foo",
    "UPDATE foo SET x=1",
    "GRANT ALL ON foo TO public",
    "CREATE TABLE foo (id int)",
    "MERGE INTO foo USING bar ON 1=1",
])
def test_dangerous_keywords(keyword):
    errors = _check(keyword)
    assert any("Dangerous" in e for e in errors)


def test_keyword_inside_literal_is_ignored():
    sql = (
        "SELECT * FROM STICK_DB.FINANCIAL.S3_GL\n"
        "WHERE LOWER(DESCRIPTION) LIKE '%drop table; update -- x%'\n"
        "LIMIT 100"
    )
    assert _check(sql) == []


def test_escaped_quote_inside_literal():
    sql = "SELECT * FROM STICK_DB.FINANCIAL.S3_GL WHERE VENDORNAME = 'O''Brien; DELETE' LIMIT 5"
    assert _check(sql) == []


# ── 4. No SQL comments ──────────────────────────────────

def test_inline_comment():
    sql = "SELECT * FROM STICK_DB.FINANCIAL.S3_GL -- sneaky comment\nLIMIT 10"
    errors = _check(sql)
    assert any("comment" in e.lower() for e in errors)


def test_block_comment():
    sql = "SELECT * /* hidden */ FROM STICK_DB.FINANCIAL.S3_GL LIMIT 10"
    errors = _check(sql)
    assert any("comment" in e.lower() for e in errors)


# ── 5. Only the GL table ────────────────────────────────

def test_other_table_rejected():
    sql = "SELECT * FROM INFORMATION_SCHEMA.TABLES LIMIT 10"
    errors = _check(sql)
    assert any("INFORMATION_SCHEMA.TABLES" in e for e in errors)


def test_join_to_other_table_rejected():
    sql = (
        "SELECT * FROM STICK_DB.FINANCIAL.S3_GL "
        "JOIN STICK_DB.FINANCIAL.PAYROLL ON 1=1 LIMIT 10"
    )
    errors = _check(sql)
    assert any("PAYROLL" in e for e in errors)


# ── 6. LIMIT clause ─────────────────────────────────────

def test_missing_limit():
    errors = _check("SELECT * FROM STICK_DB.FINANCIAL.S3_GL")
    assert any("LIMIT" in e for e in errors)


def test_limit_too_high():
    errors = _check("SELECT * FROM STICK_DB.FINANCIAL.S3_GL LIMIT 999")
    assert any("LIMIT" in e and "999" in e for e in errors)


def test_limit_at_max():
    errors = _check("SELECT * FROM STICK_DB.FINANCIAL.S3_GL LIMIT 100")
    assert not any("LIMIT" in e for e in errors)


# ── Edge cases ───────────────────────────────────────────

def test_empty_sql():
    errors = _check("")
    assert len(errors) >= 1


def test_generated_queries_pass():
    catalog = ColumnCatalog(["PER_END_DATE", "VENDORNAME", "DESCRIPTION", "BALANCE", "CO_ID"])
    intent = Intent(
        data_type="expenses",
        group_by=("vendor",),
        filters=(
            FilterClause(field="company", values=(1,)),
            FilterClause(field="vendor", operator="!=", values=("Drop & Co; --",), exclude=True),
        ),
        keyword=("update",),
        mode="search",
    )
    pair = synthesize(intent, catalog, table=TABLE, amount_column="BALANCE")
    assert _check(pair.aggregate_query) == []
    assert _check(pair.raw_query) == []
