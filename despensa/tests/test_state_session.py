from datetime import date

import pytest

from despensa.app.domain.state import PaymentMethod, dump_state, empty_state
from despensa.app.services import catalog_service, closing_service
from despensa.app.services.exceptions import StateLoadError, StatePersistError
from despensa.app.services.sales_service import Cart, PayWith, add_to_cart, record_sale
from despensa.app.store.local_backup import LocalBackupStore
from despensa.app.store.session import LedgerSession, SessionStatus


class FakeStateClient:
    def __init__(self, documents=None, *, fail_load=False, fail_save=False):
        self.documents = dict(documents or {})
        self.fail_load = fail_load
        self.fail_save = fail_save
        self.gets = []
        self.puts = []
        self.on_get = None
        self.closed = False

    def get_state(self, email):
        self.gets.append(email)
        if self.on_get is not None:
            hook, self.on_get = self.on_get, None
            hook(email)
        if self.fail_load:
            raise StateLoadError("Error al cargar estado: 503")
        return self.documents.get(email, {})

    def put_state(self, email, document):
        if self.fail_save:
            raise StatePersistError("Error guardando estado: 503")
        self.puts.append((email, document))
        self.documents[email] = document

    def close(self):
        self.closed = True


class MemoryBackup:
    def __init__(self, rows=None):
        self.rows = dict(rows or {})

    def read(self, email):
        return self.rows.get(email)

    def write(self, email, payload):
        self.rows[email] = payload


def _doc(*eans):
    state = empty_state()
    for ean in eans:
        state = catalog_service.add_product(state, ean, f"Producto {ean}", 100)
    return dump_state(state)


def _session(client, backup=None):
    # A long window keeps saves pending until the test flushes them.
    return LedgerSession(client, backup, debounce_seconds=60)


def test_successful_load_is_ready_and_mirrored():
    client = FakeStateClient({"ana@example.com": _doc("1")})
    backup = MemoryBackup()
    session = _session(client, backup)

    assert session.start("  Ana@Example.com ") == SessionStatus.READY
    assert session.email == "ana@example.com"
    assert [p.ean for p in session.state.products] == ["1"]
    assert backup.rows["ana@example.com"]["productos"][0]["ean"] == "1"
    assert client.puts == []


def test_mutations_inside_the_window_collapse_into_one_save():
    client = FakeStateClient({"ana@example.com": _doc()})
    session = _session(client)
    session.start("ana@example.com")

    for ean in ("1", "2", "3"):
        assert session.dispatch(catalog_service.add_product, ean, "x", 10).ok
    assert session.save_pending
    session.flush()

    assert len(client.puts) == 1
    email, document = client.puts[0]
    assert email == "ana@example.com"
    assert [p["ean"] for p in document["productos"]] == ["1", "2", "3"]
    assert not session.save_pending


def test_rejected_action_reports_and_changes_nothing():
    client = FakeStateClient({"ana@example.com": _doc("1")})
    session = _session(client)
    session.start("ana@example.com")
    before = session.state

    result = session.dispatch(catalog_service.add_product, "1", "dup", 10)

    assert not result.ok
    assert "EAN" in result.message
    assert session.state is before
    assert not session.save_pending


def test_no_write_while_loading():
    client = FakeStateClient({"ana@example.com": _doc("1")})
    session = _session(client)
    seen = []
    client.on_get = lambda email: seen.append(session.dispatch(catalog_service.add_product, "9", "x", 1))

    session.start("ana@example.com")
    session.flush()

    assert seen[0].ok is False
    assert [p.ean for p in session.state.products] == ["1"]
    assert client.puts == []


def test_failed_load_uses_the_local_backup():
    client = FakeStateClient(fail_load=True)
    backup = MemoryBackup({"ana@example.com": _doc("7")})
    session = _session(client, backup)

    assert session.start("ana@example.com") == SessionStatus.READY
    assert [p.ean for p in session.state.products] == ["7"]
    assert "503" in session.last_error


def test_failed_load_without_backup_withholds_saves():
    client = FakeStateClient(fail_load=True)
    session = _session(client, MemoryBackup())

    assert session.start("ana@example.com") == SessionStatus.FAILED
    assert session.dispatch(catalog_service.add_product, "1", "x", 10).ok
    session.flush()
    assert client.puts == []

    session.accept_empty()
    session.flush()
    assert session.status == SessionStatus.READY
    assert [p["ean"] for p in client.puts[0][1]["productos"]] == ["1"]


def test_retry_load_recovers_from_failure():
    client = FakeStateClient({"ana@example.com": _doc("5")}, fail_load=True)
    session = _session(client)
    assert session.start("ana@example.com") == SessionStatus.FAILED

    client.fail_load = False
    assert session.retry_load() == SessionStatus.READY
    assert [p.ean for p in session.state.products] == ["5"]


def test_superseded_load_is_discarded():
    client = FakeStateClient({"ana@example.com": _doc("ana"), "beto@example.com": _doc("beto")})
    session = _session(client)
    client.on_get = lambda email: session.start("beto@example.com")

    session.start("ana@example.com")

    assert session.email == "beto@example.com"
    assert [p.ean for p in session.state.products] == ["beto"]
    assert client.gets == ["ana@example.com", "beto@example.com"]


def test_save_failure_is_logged_and_kept_locally(caplog):
    client = FakeStateClient({"ana@example.com": _doc()})
    backup = MemoryBackup()
    session = _session(client, backup)
    session.start("ana@example.com")
    client.fail_save = True

    session.dispatch(catalog_service.add_product, "1", "x", 10)
    session.flush()

    assert "Saving state" in caplog.text
    assert session.last_error
    assert backup.rows["ana@example.com"]["productos"][0]["ean"] == "1"


def test_logout_sends_pending_save_then_resets():
    client = FakeStateClient({"ana@example.com": _doc()})
    session = _session(client)
    session.start("ana@example.com")
    session.dispatch(closing_service.update_cash_field, date(2026, 3, 10), "pedidos_ya_cash_amount", 5)

    session.close()

    assert len(client.puts) == 1
    assert session.status == SessionStatus.IDLE
    assert session.email is None
    assert session.state == empty_state()
    assert client.closed
    assert not session.dispatch(catalog_service.add_product, "1", "x", 1).ok


def test_switching_user_saves_the_leaving_users_change():
    client = FakeStateClient({"ana@example.com": _doc(), "beto@example.com": _doc("9")})
    session = _session(client)
    session.start("ana@example.com")
    session.dispatch(catalog_service.add_product, "1", "Yerba", 2100)

    session.start("beto@example.com")

    assert [email for email, _ in client.puts] == ["ana@example.com"]
    assert client.documents["ana@example.com"]["productos"][0]["ean"] == "1"
    assert [p.ean for p in session.state.products] == ["9"]
    assert not session.save_pending


def test_blank_email_cannot_start_a_session():
    with pytest.raises(StateLoadError):
        _session(FakeStateClient()).start("   ")


def test_local_backup_store_upserts_by_email(sqlite_engine):
    store = LocalBackupStore()
    assert store.read("nadie@example.com") is None

    store.write("Ana@Example.com", _doc("1"))
    store.write("ana@example.com", _doc("2"))

    assert store.read("ANA@example.com")["productos"][0]["ean"] == "2"


def test_session_round_trips_payment_method_changes():
    client = FakeStateClient({"ana@example.com": _doc("1")})
    session = _session(client)
    session.start("ana@example.com")

    cart = add_to_cart(Cart(), session.state.products, "1")
    assert session.dispatch(record_sale, cart, PayWith(PaymentMethod.CARD_NETWORK_A)).ok
    session.flush()

    stored = client.documents["ana@example.com"]["ventas"][0]
    assert stored["pago"] == {"tipo": "unico", "metodo": "mercadopago"}
    assert stored["fechaNegocio"] is None
