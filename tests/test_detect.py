import textwrap
from pathlib import Path

import pytest

import ledger_import.ingest.fixed_text as fixed_text_mod
import ledger_import.ingest.pdf_statement as pdf_mod
from ledger_import.errors import FormatDetectionError, ParseError
from ledger_import.ingest.detect import NO_PDF_TRANSACTIONS, detect_statement, parser_for
from ledger_import.ingest.parsers import (
    CsvStatementParser,
    FixedTextStatementParser,
    PdfStatementParser,
    StatementParser,
)
from ledger_import.models import StatementFormat

BOA_TEXT = textwrap.dedent(
    """
    Beginning balance as of 01/01/2025                          100.00
    Ending balance as of 01/31/2025                              80.00

    Date        Description                      Amount  Running Bal.
    01/03/2025  COFFEE                           -20.00       80.00
    """
).lstrip("\n")

PDF_TEXT = textwrap.dedent(
    """
    Wells Fargo Everyday Checking statement for January 2025 and the account ending 9876
    Transaction history
    Date Description Deposits Withdrawals Ending daily balance
    01/03/2025 PAYROLL ACME 1,000.00
    01/04/2025 POWER COMPANY 80.00
    01/05/2025 WATER DISTRICT 30.00
    """
).lstrip("\n")


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_csv_detected_with_mapping_guess(tmp_path: Path):
    p = _write(tmp_path, "export.CSV", "Date,Description,Amount\n2025-01-02,Shop,-3.00\n")
    detected = detect_statement(p)
    assert detected.format is StatementFormat.CSV
    assert detected.mapping_guess is not None
    assert detected.mapping_guess.mapping.amount_column == 2


def test_unknown_extension_is_treated_as_csv(tmp_path: Path):
    p = _write(tmp_path, "export.dat", "Date,Amount\n2025-01-02,-3.00\n")
    assert detect_statement(p).format is StatementFormat.CSV


def test_csv_without_data_rows_is_rejected(tmp_path: Path):
    with pytest.raises(FormatDetectionError, match="no data rows"):
        detect_statement(_write(tmp_path, "a.csv", "Date,Amount\n"))
    with pytest.raises(FormatDetectionError, match="no header row"):
        detect_statement(_write(tmp_path, "b.csv", ""))


def test_missing_file_is_a_detection_error(tmp_path: Path):
    with pytest.raises(FormatDetectionError):
        detect_statement(tmp_path / "nope.csv")


def test_txt_fixed_format_detected(tmp_path: Path):
    detected = detect_statement(_write(tmp_path, "stmt.txt", BOA_TEXT))
    assert detected.format is StatementFormat.FIXED_TEXT
    assert detected.mapping_guess is None
    assert detected.preview.total_rows == 1


def test_txt_falls_back_to_csv(tmp_path: Path):
    p = _write(tmp_path, "export.txt", "Date,Payee,Amount\n2025-01-02,Shop,-3.00\n")
    detected = detect_statement(p)
    assert detected.format is StatementFormat.CSV
    assert detected.mapping_guess is not None


def test_txt_parser_error_falls_back_to_csv(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    def _boom(path, limit=None):
        raise ParseError("unreadable fixed-width layout")

    monkeypatch.setattr(fixed_text_mod, "preview_fixed_text", _boom)
    p = _write(tmp_path, "export.txt", "Date,Payee,Amount\n2025-01-02,Shop,-3.00\n")
    detected = detect_statement(p)
    assert detected.format is StatementFormat.CSV
    assert detected.preview.total_rows == 1


def test_pdf_detected(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setattr(pdf_mod, "extract_text", lambda _p, _c=None: PDF_TEXT)
    detected = detect_statement(tmp_path / "jan.pdf")
    assert detected.format is StatementFormat.PDF
    assert detected.preview.total_rows == 3
    assert detected.preview.detected_format == "Wells Fargo"


def test_pdf_without_transactions_is_rejected(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    text = "Welcome to your statement. " * 10
    monkeypatch.setattr(pdf_mod, "extract_text", lambda _p, _c=None: text)
    with pytest.raises(FormatDetectionError) as ei:
        detect_statement(tmp_path / "empty.pdf")
    assert str(ei.value) == NO_PDF_TRANSACTIONS


def test_pdf_failure_never_falls_back_to_csv(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    def _fail(_p, _c=None):
        raise ParseError("Failed to open PDF: broken")

    monkeypatch.setattr(pdf_mod, "extract_text", _fail)
    # Valid CSV bytes behind a .pdf name are still rejected.
    p = _write(tmp_path, "odd.pdf", "Date,Amount\n2025-01-02,-3.00\n")
    with pytest.raises(FormatDetectionError, match="Failed to open PDF"):
        detect_statement(p)


def test_parser_for_matches_format(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    csv_detected = detect_statement(_write(tmp_path, "a.csv", "Date,Amount\n2025-01-02,1.00\n"))
    txt_detected = detect_statement(_write(tmp_path, "b.txt", BOA_TEXT))
    monkeypatch.setattr(pdf_mod, "extract_text", lambda _p, _c=None: PDF_TEXT)
    pdf_detected = detect_statement(tmp_path / "c.pdf")

    assert isinstance(parser_for(csv_detected), CsvStatementParser)
    assert isinstance(parser_for(txt_detected), FixedTextStatementParser)
    assert isinstance(parser_for(pdf_detected), PdfStatementParser)
    assert isinstance(parser_for(pdf_detected), StatementParser)


def test_csv_parser_requires_mapping(tmp_path: Path):
    p = _write(tmp_path, "a.csv", "Date,Amount\n2025-01-02,1.00\n")
    with pytest.raises(ValueError):
        CsvStatementParser().parse(p)
