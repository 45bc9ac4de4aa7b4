import textwrap
from pathlib import Path

import pytest

from ledger_import.errors import ParseError
from ledger_import.ingest.csv_statement import parse_csv, preview_csv
from ledger_import.mapping import ColumnMapping


def _write(tmp_path: Path, text: str, name: str = "statement.csv") -> Path:
    p = tmp_path / name
    p.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
    return p


def test_preview_limits_rows_and_counts_all(tmp_path: Path):
    rows = [f"01/{d:02d}/2025,Shop {d},-{d}.00" for d in range(1, 16)]
    lines = ["Date,Description,Amount", *rows]
    p = _write(tmp_path, "\n".join(lines) + "\n")
    preview = preview_csv(p)
    assert preview.headers == ("Date", "Description", "Amount")
    assert len(preview.rows) == 10
    assert preview.total_rows == 15


def test_preview_strips_bom_and_skips_blank_rows(tmp_path: Path):
    p = tmp_path / "bom.csv"
    p.write_bytes("\ufeffDate,Amount\n\n2025-01-02,5.00\n,\n".encode())
    preview = preview_csv(p)
    assert preview.headers == ("Date", "Amount")
    assert preview.total_rows == 1


def test_parse_single_amount_column(tmp_path: Path):
    p = _write(
        tmp_path,
        """
        Date,Description,Amount,Notes
        01/15/2025,COFFEE SHOP,-5.50,latte
        01/16/2025,PAYROLL,"1,200.00",
        """,
    )
    mapping = ColumnMapping(date_column=0, payee_column=1, amount_column=2, memo_column=3)
    rows = parse_csv(p, mapping.resolve(use_separate_columns=False))
    assert [(r.date, r.amount, r.payee, r.memo) for r in rows] == [
        ("2025-01-15", -550, "COFFEE SHOP", "latte"),
        ("2025-01-16", 120000, "PAYROLL", None),
    ]
    assert rows[0].raw_data == {
        "Date": "01/15/2025",
        "Description": "COFFEE SHOP",
        "Amount": "-5.50",
        "Notes": "latte",
    }


def test_parse_inverts_card_export_amounts(tmp_path: Path):
    p = _write(
        tmp_path,
        """
        Date,Payee,Amount
        2025-02-01,GROCER,42.10
        2025-02-02,REFUND,-10.00
        """,
    )
    mapping = ColumnMapping(payee_column=1, amount_column=2, invert_amounts=True)
    rows = parse_csv(p, mapping.resolve(use_separate_columns=False))
    assert [r.amount for r in rows] == [-4210, 1000]


def test_parse_separate_debit_credit_columns(tmp_path: Path):
    p = _write(
        tmp_path,
        """
        Date,Description,Debit,Credit
        2025-03-01,RENT,"1,050.00",
        2025-03-02,SALARY,,2500.00
        2025-03-03,EMPTY,,
        """,
    )
    mapping = ColumnMapping(payee_column=1, debit_column=2, credit_column=3)
    rows = parse_csv(p, mapping.resolve(use_separate_columns=True))
    assert [r.amount for r in rows] == [-105000, 250000, 0]


def test_parse_uses_explicit_date_format(tmp_path: Path):
    p = _write(
        tmp_path,
        """
        Datum,Betrag
        15.01.2025,-3.00
        """,
    )
    mapping = ColumnMapping(date_format="%d.%m.%Y")
    rows = parse_csv(p, mapping.resolve(use_separate_columns=False))
    assert rows[0].date == "2025-01-15"


def test_parse_short_rows_read_missing_cells_as_empty(tmp_path: Path):
    p = _write(
        tmp_path,
        """
        Date,Amount,Payee,Memo
        2025-01-02,4.00
        """,
    )
    mapping = ColumnMapping(payee_column=2, memo_column=3)
    rows = parse_csv(p, mapping.resolve(use_separate_columns=False))
    assert rows[0].payee is None and rows[0].memo is None
    assert rows[0].amount == 400


def test_parse_reports_line_of_bad_date(tmp_path: Path):
    p = _write(
        tmp_path,
        """
        Date,Amount
        2025-01-02,4.00
        someday,5.00
        """,
    )
    with pytest.raises(ParseError, match=r"^Line 3: "):
        parse_csv(p, ColumnMapping().resolve(use_separate_columns=False))


def test_parse_reports_invalid_amount(tmp_path: Path):
    p = _write(
        tmp_path,
        """
        Date,Amount
        2025-01-02,four dollars
        """,
    )
    with pytest.raises(ParseError, match="Line 2"):
        parse_csv(p, ColumnMapping().resolve(use_separate_columns=False))


def test_parse_missing_date_is_an_error(tmp_path: Path):
    p = _write(
        tmp_path,
        """
        Date,Amount
        ,4.00
        """,
    )
    with pytest.raises(ParseError, match="missing date"):
        parse_csv(p, ColumnMapping().resolve(use_separate_columns=False))


def test_unreadable_file_raises_parse_error(tmp_path: Path):
    with pytest.raises(ParseError):
        preview_csv(tmp_path / "missing.csv")
    binary = tmp_path / "binary.csv"
    binary.write_bytes(b"\xff\xfe\x00\x81garbage")
    with pytest.raises(ParseError):
        preview_csv(binary)
