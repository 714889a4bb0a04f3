import uuid

import pytest

pytest.importorskip("httpx")


def _email():
    return f"tienda-{uuid.uuid4().hex[:8]}@example.com"


def _document():
    return {
        "productos": [
            {"id": "p1", "ean": "779001", "nombre": "Leche", "precio": 1000},
            {"id": "p2", "ean": "779002", "nombre": "Pan", "precio": "1.500"},
        ],
        "ventas": [
            {
                "id": "v1",
                "fecha": "2026-03-10T15:00:00Z",
                "items": [{"id": "l1", "ean": "779001", "nombre": "Leche", "precio": 1000, "qty": 1}],
                "pago": {"tipo": "unico", "metodo": "efectivo"},
                "total": 1000,
                "fechaNegocio": None,
            },
            {
                "id": "v0",
                "fecha": "2026-03-09T15:00:00Z",
                "items": [{"id": "l0", "ean": "779002", "nombre": "Pan", "precio": 1500, "qty": 2}],
                "pago": {"tipo": "unico", "metodo": "posnet"},
                "total": 3000,
                "fechaNegocio": "2026-03-09",
            },
        ],
        "cierres": {
            "2026-03-09": {"efectivoCajaProxDia": 500, "efectivoPedidosYa": 0, "cerrado": True},
            "2026-03-10": {"efectivoCajaProxDia": 300, "efectivoPedidosYa": 200, "cerrado": False},
        },
        "fiados": [
            {
                "id": "f1",
                "nombre": "Juan",
                "cargos": [
                    {
                        "id": "c1",
                        "fecha": "2026-03-08T12:00:00Z",
                        "items": [{"ean": "779001", "qty": 2}, {"ean": "779003", "qty": 1, "precioUnitario": 50}],
                    }
                ],
                "abonos": [{"id": "a1", "fecha": "2026-03-09T12:00:00Z", "monto": 300}],
            }
        ],
        "settings": {"fechaNegocioAbierta": "2026-03-10", "nombreDespensa": "Don Pepe"},
    }


def test_unknown_email_gets_an_empty_document(api_client):
    res = api_client.get("/estado", params={"email": _email()})
    assert res.status_code == 200
    assert res.json() == {}


def test_put_replaces_the_document_and_normalizes_email(api_client):
    email = _email()
    res = api_client.put("/estado", params={"email": email.upper()}, json=_document())
    assert res.status_code == 200

    doc = api_client.get("/estado", params={"email": f"  {email} "}).json()
    assert doc == _document()

    api_client.put("/estado", params={"email": email}, json={"productos": []})
    doc = api_client.get("/estado", params={"email": email}).json()
    assert doc == {"productos": []}


def test_put_stores_the_body_as_sent(api_client):
    email = _email()
    legacy = {
        "ventas": [{"id": "v9", "fecha": "2026-03-10T15:00:00Z", "items": [], "total": 400, "metodo": "posnet"}],
        "extraKey": {"nota": "sin modelo"},
    }
    api_client.put("/estado", params={"email": email}, json=legacy)

    doc = api_client.get("/estado", params={"email": email}).json()
    assert doc == legacy

    body = api_client.get(
        "/resumen-historico", params={"email": email, "desde": "2026-03-01", "hasta": "2026-03-31"}
    ).json()
    assert body["by_method"]["posnet"] == 400


def test_put_rejects_unreadable_documents(api_client):
    bad = {"ventas": [{"id": "x", "items": [], "pago": {"tipo": "unico", "metodo": "bitcoin"}}]}
    res = api_client.put("/estado", params={"email": _email()}, json=bad)
    assert res.status_code == 422


def test_email_is_required(api_client):
    assert api_client.get("/estado").status_code == 422
    assert api_client.get("/estado", params={"email": "   "}).status_code == 400


def test_closing_view_for_the_open_day(api_client):
    email = _email()
    api_client.put("/estado", params={"email": email}, json=_document())

    body = api_client.get("/cierre", params={"email": email}).json()

    assert body["day"] == "2026-03-10"
    assert body["total_available_cash"] == 1400
    assert body["by_method"]["efectivo"] == 1000
    assert body["is_closed"] is False

    previous = api_client.get("/cierre", params={"email": email, "fecha": "2026-03-09"}).json()
    assert previous["is_closed"] is True
    assert previous["total_sales"] == 3000


def test_historical_summary_and_invalid_range(api_client):
    email = _email()
    api_client.put("/estado", params={"email": email}, json=_document())

    body = api_client.get(
        "/resumen-historico", params={"email": email, "desde": "2026-03-01", "hasta": "2026-03-31"}
    ).json()
    assert body["valid"] is True
    assert body["total_sales"] == 4000
    assert body["store_name"] == "Don Pepe"

    invalid = api_client.get(
        "/resumen-historico", params={"email": email, "desde": "2026-03-31", "hasta": "2026-03-01"}
    ).json()
    assert invalid == {**invalid, "valid": False, "total_sales": 0.0}
    assert invalid["date_from"] is None


def test_ranking_endpoint_uses_stored_keys(api_client):
    email = _email()
    api_client.put("/estado", params={"email": email}, json=_document())

    body = api_client.get("/ranking-ventas", params={"email": email}).json()

    assert body["totalVentas"] == 4000
    assert [(p["ean"], p["cantidad"]) for p in body["productos"]] == [("779002", 2), ("779001", 1)]

    only_today = api_client.get(
        "/ranking-ventas", params={"email": email, "desde": "2026-03-10", "hasta": "2026-03-10"}
    ).json()
    assert [p["ean"] for p in only_today["productos"]] == ["779001"]
    assert only_today["productos"][0]["porcentaje"] == 100.0

    bad = api_client.get("/ranking-ventas", params={"email": email, "desde": "2026-03-10", "hasta": "2026-03-01"})
    assert bad.status_code == 400


def test_credit_accounts_view(api_client):
    email = _email()
    api_client.put("/estado", params={"email": email}, json=_document())

    [account] = api_client.get("/fiados", params={"email": email}).json()

    # 2 x 1000 from the catalog + 50 frozen - 300 paid
    assert account["person_name"] == "Juan"
    assert account["balance"] == 1750
    lines = account["charges"][0]["lines"]
    assert [line["frozen"] for line in lines] == [False, True]
    assert lines[1]["product_name"] == "(producto eliminado)"


def test_price_lookup(api_client):
    email = _email()
    api_client.put("/estado", params={"email": email}, json=_document())

    body = api_client.get("/productos/precio", params={"email": email, "codigo": "779001"}).json()
    assert body["rappi_price"] == 1250
    assert body["pedidos_ya_price"] == 1419

    missing = api_client.get("/productos/precio", params={"email": email, "codigo": "000"})
    assert missing.status_code == 404
