"""Tests for process-manager/app/csv_import.py -- the action CSV import."""

from __future__ import annotations

from datetime import date

import pytest

from app.csv_export import action_template
from app.csv_import import (
    decode_upload,
    import_actions,
    parse_actions_csv,
    parse_import_date,
)
from app.errors import (
    CsvImportError,
    FormatError,
    ImportTransportError,
    MissingRequiredColumn,
    RowValidationError,
)
from shared.auth import NotAuthenticatedError, Session

HEADER = '"Fecha de Actuación","Actuación","Anotación","Fecha Inicia Término","Fecha Finaliza Término"'


# ── Date parsing ─────────────────────────────────────────────────────────


class TestParseImportDate:
    def test_day_first_and_iso_agree(self):
        assert parse_import_date("15/03/2024") == date(2024, 3, 15)
        assert parse_import_date("2024-03-15") == date(2024, 3, 15)

    def test_single_digit_parts(self):
        assert parse_import_date("5/3/2024") == date(2024, 3, 5)

    def test_iso_datetime(self):
        assert parse_import_date("2024-03-15T10:30:00") == date(2024, 3, 15)

    def test_two_digit_year_rejected(self):
        assert parse_import_date("01/02/24") is None

    @pytest.mark.parametrize(
        "value",
        [
            "31/02/2024", "15/13/2024", "15/03", "aa/bb/cccc", "2024-02-30",
            "15.03.2024", "hoy", "", "15/03/024", "2024-3-5",
        ],
    )
    def test_invalid(self, value):
        assert parse_import_date(value) is None


class TestDecodeUpload:
    def test_strips_bom(self):
        assert decode_upload("\ufeffa,b".encode("utf-8")) == "a,b"

    def test_passes_text_through(self):
        assert decode_upload("a,b") == "a,b"

    def test_rejects_non_utf8(self):
        with pytest.raises(FormatError):
            decode_upload("Actuación".encode("latin-1"))


# ── Parsing a whole document ─────────────────────────────────────────────


class TestParseActionsCsv:
    def _parse(self, text):
        return parse_actions_csv(text, process_id="p-1", owner_id="user-1")

    def test_sample_with_all_columns(self):
        text = (
            f"{HEADER}\n"
            '"15/03/2024","Auto admisorio","Notificado por estado","16/03/2024","2024-03-30"\n'
        )
        records, warnings = self._parse(text)
        assert warnings == []
        assert len(records) == 1
        row = records[0].to_row()
        assert row == {
            "process_id": "p-1",
            "user_id": "user-1",
            "action_date": "2024-03-15",
            "action": "Auto admisorio",
            "annotation": "Notificado por estado",
            "term_start_date": "2024-03-16",
            "term_end_date": "2024-03-30",
        }

    def test_empty_optionals_are_omitted(self):
        records, _ = self._parse(f'{HEADER}\n"2024-03-15","Traslado","","",""')
        assert records[0].to_row() == {
            "process_id": "p-1",
            "user_id": "user-1",
            "action_date": "2024-03-15",
            "action": "Traslado",
        }

    def test_short_rows_treat_missing_cells_as_empty(self):
        records, _ = self._parse("Fecha de Actuación,Actuación,Anotación\n15/03/2024,Traslado")
        assert records[0].annotation is None

    def test_blank_lines_and_crlf_ignored(self):
        text = f"{HEADER}\r\n\r\n15/03/2024,Uno\r\n   \r\n16/03/2024,Dos\r\n"
        records, _ = self._parse(text)
        assert [r.action for r in records] == ["Uno", "Dos"]

    def test_quoted_comma_in_annotation(self):
        records, _ = self._parse(f'{HEADER}\n15/03/2024,Traslado,"Parte A, parte B"')
        assert records[0].annotation == "Parte A, parte B"

    def test_header_only_is_format_error(self):
        with pytest.raises(FormatError) as exc_info:
            self._parse(HEADER)
        assert "al menos un encabezado y una fila de datos" in exc_info.value.message

    def test_missing_required_column(self):
        with pytest.raises(MissingRequiredColumn):
            self._parse('"Fecha","Notas"\n15/03/2024,algo')

    def test_row_missing_action_aborts(self):
        text = f"{HEADER}\n15/03/2024,Uno\n16/03/2024,"
        with pytest.raises(RowValidationError) as exc_info:
            self._parse(text)
        assert exc_info.value.row_number == 2
        assert exc_info.value.row == "16/03/2024,"
        assert "fecha de actuación y actuación" in exc_info.value.message

    def test_invalid_action_date_aborts(self):
        with pytest.raises(RowValidationError) as exc_info:
            self._parse(f"{HEADER}\n31/02/2024,Uno")
        assert "Formato de fecha inválido" in exc_info.value.message
        assert "31/02/2024,Uno" in exc_info.value.message

    def test_two_digit_year_action_date_aborts(self):
        with pytest.raises(RowValidationError) as exc_info:
            self._parse(f"{HEADER}\n01/02/24,Auto")
        assert exc_info.value.row_number == 1

    def test_two_digit_year_optional_date_is_dropped(self):
        records, warnings = self._parse(f"{HEADER}\n15/03/2024,Uno,,01/04/24,")
        assert records[0].term_start_date is None
        assert warnings[0].value == "01/04/24"

    def test_invalid_optional_date_is_dropped_with_warning(self):
        records, warnings = self._parse(f"{HEADER}\n15/03/2024,Uno,,pronto,2024-04-01")
        assert records[0].term_start_date is None
        assert records[0].term_end_date == date(2024, 4, 1)
        assert len(warnings) == 1
        assert warnings[0].row_number == 1
        assert warnings[0].value == "pronto"
        assert warnings[0].column == "fecha inicia termino"

    def test_accent_free_headers_accepted(self):
        records, _ = self._parse("fecha actuacion,ACTUACION\n2024-03-15,Uno")
        assert records[0].action_date == date(2024, 3, 15)

    def test_blank_template_plus_row_parses(self):
        text = action_template().content + "\n15/03/2024,Uno"
        records, _ = self._parse(text)
        assert len(records) == 1


# ── Import driver ────────────────────────────────────────────────────────


class TestImportActions:
    def test_end_to_end_single_batch_insert(self, fake_store, session):
        data = (
            f'{HEADER}\n"15/03/2024","Auto admisorio","Notificado","",""\n'
        ).encode("utf-8")
        result = import_actions(data, session, "p-1", store=fake_store)

        assert result.inserted == 1
        inserts = fake_store.calls_of("insert")
        assert len(inserts) == 1
        _, table, rows = inserts[0]
        assert table == "process_actions"
        assert rows == [{
            "process_id": "p-1",
            "user_id": "user-1",
            "action_date": "2024-03-15",
            "action": "Auto admisorio",
            "annotation": "Notificado",
        }]

    def test_three_column_file(self, fake_store, session):
        data = (
            '"Fecha de Actuación","Actuación","Anotación"\n'
            '"01/02/2024","Auto admite demanda","Ninguna"\n'
        ).encode("utf-8")
        result = import_actions(data, session, "p-1", store=fake_store)

        assert result.inserted == 1
        assert result.warnings == []
        inserts = fake_store.calls_of("insert")
        assert len(inserts) == 1
        assert inserts[0][2] == [{
            "process_id": "p-1",
            "user_id": "user-1",
            "action_date": "2024-02-01",
            "action": "Auto admite demanda",
            "annotation": "Ninguna",
        }]

    def test_two_digit_year_inserts_nothing(self, fake_store, session):
        with pytest.raises(RowValidationError):
            import_actions("Fecha de Actuación,Actuación\n01/02/24,Auto", session, "p-1", store=fake_store)
        assert fake_store.calls_of("insert") == []

    def test_many_rows_still_one_insert(self, fake_store, session):
        lines = [HEADER] + [f"{d:02d}/03/2024,Actuación {d}" for d in range(1, 21)]
        result = import_actions("\n".join(lines), session, "p-1", store=fake_store)
        assert result.inserted == 20
        assert len(fake_store.calls_of("insert")) == 1
        assert len(fake_store.calls_of("insert")[0][2]) == 20

    def test_missing_column_inserts_nothing(self, fake_store, session):
        with pytest.raises(MissingRequiredColumn):
            import_actions('"Fecha","Notas"\n15/03/2024,x', session, "p-1", store=fake_store)
        assert fake_store.calls_of("insert") == []

    def test_one_bad_row_inserts_nothing(self, fake_store, session):
        text = f"{HEADER}\n15/03/2024,Válida\n16/03/2024,"
        with pytest.raises(RowValidationError):
            import_actions(text, session, "p-1", store=fake_store)
        assert fake_store.calls_of("insert") == []

    def test_store_failure_becomes_transport_error(self, fake_store, session):
        fake_store.fail_on["insert"] = "permission denied"
        with pytest.raises(ImportTransportError) as exc_info:
            import_actions(f"{HEADER}\n15/03/2024,Uno", session, "p-1", store=fake_store)
        assert "permission denied" in exc_info.value.message
        assert isinstance(exc_info.value, CsvImportError)

    def test_requires_authenticated_session(self, fake_store):
        with pytest.raises(NotAuthenticatedError):
            import_actions(f"{HEADER}\n15/03/2024,Uno", Session(), "p-1", store=fake_store)
        assert fake_store.calls == []

    def test_warnings_returned(self, fake_store, session):
        result = import_actions(
            f"{HEADER}\n15/03/2024,Uno,,nunca,", session, "p-1", store=fake_store
        )
        assert result.inserted == 1
        assert len(result.warnings) == 1
        assert "term_start_date" not in fake_store.calls_of("insert")[0][2][0]
