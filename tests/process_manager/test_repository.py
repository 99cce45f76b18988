"""Tests for process-manager/app/repository.py against the in-memory FakeStore."""

from __future__ import annotations

import pytest

from app import repository
from app.errors import FormValidationError
from app.records import ACTIONS, CLIENTS, PROCESSES, SUBJECTS, TASKS, TERMS
from shared.auth import NotAuthenticatedError, Session
from shared.data_store import DataStoreError


class TestReads:
    def test_list_records_filters_by_process_and_orders_newest_first(self, fake_store, session):
        fake_store.seed("process_subjects", {"process_id": "p-1", "name": "Ana", "type": "Demandante"})
        fake_store.seed("process_subjects", {"process_id": "p-2", "name": "Luis", "type": "Demandado"})
        fake_store.seed("process_subjects", {"process_id": "p-1", "name": "Eva", "type": "Otro"})

        rows = repository.list_records(session, SUBJECTS, parent_id="p-1", store=fake_store)

        assert [r["name"] for r in rows] == ["Eva", "Ana"]
        _, table, filters, _, order, descending = fake_store.calls_of("select")[0]
        assert table == "process_subjects"
        assert filters == {"process_id": "p-1"}
        assert (order, descending) == ("created_at", True)

    def test_comments_attached_with_one_in_query(self, fake_store, session):
        t1, t2 = fake_store.seed(
            "process_tasks",
            {"process_id": "p-1", "name": "Uno"},
            {"process_id": "p-1", "name": "Dos"},
        )
        fake_store.seed(
            "task_comments",
            {"task_id": t1["id"], "content": "primero"},
            {"task_id": t1["id"], "content": "segundo"},
        )

        rows = repository.list_records(session, TASKS, parent_id="p-1", store=fake_store)

        by_name = {r["name"]: r for r in rows}
        assert [c["content"] for c in by_name["Uno"]["comments"]] == ["primero", "segundo"]
        assert by_name["Dos"]["comments"] == []
        comment_selects = [c for c in fake_store.calls_of("select") if c[1] == "task_comments"]
        assert len(comment_selects) == 1
        _, _, _, in_filters, order, descending = comment_selects[0]
        assert sorted(in_filters["task_id"]) == sorted([t1["id"], t2["id"]])
        assert (order, descending) == ("created_at", False)

    def test_no_comment_query_for_empty_list(self, fake_store, session):
        assert repository.list_records(session, TASKS, parent_id="p-1", store=fake_store) == []
        assert len(fake_store.calls_of("select")) == 1

    def test_list_actions_order_toggle(self, fake_store, session):
        fake_store.seed(
            "process_actions",
            {"process_id": "p-1", "action": "B", "action_date": "2024-02-01"},
            {"process_id": "p-1", "action": "A", "action_date": "2024-01-01"},
            {"process_id": "p-1", "action": "C", "action_date": "2024-03-01"},
        )
        desc = repository.list_actions(session, "p-1", store=fake_store)
        asc = repository.list_actions(session, "p-1", ascending=True, store=fake_store)
        assert [r["action"] for r in desc] == ["C", "B", "A"]
        assert [r["action"] for r in asc] == ["A", "B", "C"]

    def test_get_record_not_found(self, fake_store, session):
        with pytest.raises(repository.RecordNotFound):
            repository.get_record(session, PROCESSES, "missing", store=fake_store)

    def test_client_detail_includes_processes(self, fake_store, session):
        (client,) = fake_store.seed("clients", {"name": "Ana", "email": "ana@example.com"})
        fake_store.seed("processes", {"client_id": client["id"], "court": "Juzgado 1"})
        fake_store.seed("processes", {"client_id": "otro", "court": "Juzgado 2"})

        detail = repository.get_client_detail(session, client["id"], store=fake_store)

        assert detail["name"] == "Ana"
        assert [p["court"] for p in detail["processes"]] == ["Juzgado 1"]

    def test_list_for_export_unknown_kind(self, fake_store, session):
        with pytest.raises(KeyError):
            repository.list_for_export(session, "invoices", store=fake_store)

    def test_store_errors_propagate(self, fake_store, session):
        fake_store.fail_on["select"] = "boom"
        with pytest.raises(DataStoreError):
            repository.list_processes(session, store=fake_store)


class TestWrites:
    def test_create_injects_parent_and_owner(self, fake_store, session):
        stored = repository.create_record(
            session, TASKS, {"name": "Radicar"}, parent_id="p-1", store=fake_store
        )
        _, table, rows = fake_store.calls_of("insert")[0]
        assert table == "process_tasks"
        assert rows[0]["process_id"] == "p-1"
        assert rows[0]["user_id"] == "user-1"
        assert rows[0]["priority"] == "medium"
        assert stored["id"]

    def test_create_top_level_has_no_parent(self, fake_store, session):
        repository.create_record(
            session, CLIENTS, {"name": "Ana", "email": "ana@example.com"}, store=fake_store
        )
        row = fake_store.calls_of("insert")[0][2][0]
        assert "process_id" not in row
        assert row["user_id"] == "user-1"

    def test_create_sub_record_needs_process(self, fake_store, session):
        with pytest.raises(FormValidationError):
            repository.create_record(session, TASKS, {"name": "x"}, store=fake_store)

    def test_create_invalid_writes_nothing(self, fake_store, session):
        with pytest.raises(FormValidationError):
            repository.create_record(session, TERMS, {"name": "T"}, parent_id="p-1", store=fake_store)
        assert fake_store.calls_of("insert") == []

    def test_create_requires_session(self, fake_store):
        with pytest.raises(NotAuthenticatedError):
            repository.create_record(
                Session(), CLIENTS, {"name": "Ana", "email": "a@b.co"}, store=fake_store
            )

    def test_update_partial(self, fake_store, session):
        (action,) = fake_store.seed(
            "process_actions", {"process_id": "p-1", "action": "Viejo", "action_date": "2024-01-01"}
        )
        updated = repository.update_record(
            session, ACTIONS, action["id"], {"action": "Nuevo"}, store=fake_store
        )
        assert updated["action"] == "Nuevo"
        assert fake_store.calls_of("update")[0][3] == {"action": "Nuevo"}

    def test_update_missing_record(self, fake_store, session):
        with pytest.raises(repository.RecordNotFound):
            repository.update_record(session, CLIENTS, "missing", {"name": "x"}, store=fake_store)

    def test_update_with_no_fields(self, fake_store, session):
        with pytest.raises(FormValidationError):
            repository.update_record(session, CLIENTS, "c-1", {"unknown": 1}, store=fake_store)

    def test_delete(self, fake_store, session):
        (client,) = fake_store.seed("clients", {"name": "Ana"})
        repository.delete_record(session, CLIENTS, client["id"], store=fake_store)
        assert fake_store.tables["clients"] == []

    def test_set_status_updates_only_status(self, fake_store, session):
        (task,) = fake_store.seed("process_tasks", {"name": "x", "status": "pending", "priority": "high"})
        repository.set_status(session, TASKS, task["id"], "in_progress", store=fake_store)
        assert fake_store.calls_of("update") == [
            ("update", "process_tasks", task["id"], {"status": "in_progress"})
        ]

    def test_set_status_rejects_unknown_status(self, fake_store, session):
        with pytest.raises(FormValidationError):
            repository.set_status(session, TASKS, "t-1", "archived", store=fake_store)

    def test_set_status_rejects_kind_without_status(self, fake_store, session):
        with pytest.raises(FormValidationError):
            repository.set_status(session, SUBJECTS, "s-1", "pending", store=fake_store)

    def test_add_comment(self, fake_store, session):
        comment = repository.add_comment(session, TERMS, "term-9", "  Revisar  ", store=fake_store)
        assert comment["term_id"] == "term-9"
        assert comment["content"] == "Revisar"
        assert comment["user_id"] == "user-1"
        assert fake_store.calls_of("insert")[0][1] == "term_comments"

    def test_blank_comment_not_sent(self, fake_store, session):
        with pytest.raises(FormValidationError) as exc_info:
            repository.add_comment(session, TASKS, "t-1", "   ", store=fake_store)
        assert exc_info.value.message == "El comentario no puede estar vacío."
        assert fake_store.calls == []

    def test_comment_on_kind_without_comments(self, fake_store, session):
        with pytest.raises(FormValidationError):
            repository.add_comment(session, SUBJECTS, "s-1", "hola", store=fake_store)
