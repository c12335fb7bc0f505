"""End-to-end tests through the HTTP surface."""

from fastapi.testclient import TestClient

from helpers import REGISTERED_NUMBER, TEST_PASSWORD, UNREGISTERED_NUMBER, FakeMessagingClient, make_settings
from whatsgate.api.factory import create_app
from whatsgate.gateway.inbox import InboundMessageRecord
from whatsgate.gateway.tokens import Permission
from whatsgate.whatsapp.models import PairingCodeReady, Ready


def _record(n: int) -> InboundMessageRecord:
    return InboundMessageRecord(
        sender_id=f"{REGISTERED_NUMBER}@c.us",
        body=f"msg {n}",
        is_group=False,
        group_name="",
        author_id="",
        author_name="",
        author_number="",
        message_id=f"M{n}",
        received_at="2026-01-01T00:00:00.000Z",
    )


class TestAuth:
    def test_correct_password_returns_token(self, client):
        response = client.post("/api/auth", json={"contrasena": TEST_PASSWORD})

        assert response.status_code == 200
        body = response.json()
        assert body["exito"] is True
        assert body["expira"] == "24 horas"
        assert body["token"]

    def test_wrong_password(self, client):
        response = client.post("/api/auth", json={"contrasena": "wrong"})

        assert response.status_code == 401
        assert response.json() == {
            "exito": False,
            "error": "auth_invalid",
            "mensaje": "Contraseña incorrecta",
        }

    def test_missing_field_is_validation_error(self, client):
        response = client.post("/api/auth", json={})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["errores"][0]["campo"] == "contrasena"

    def test_password_is_sanitized_before_check(self, client):
        response = client.post("/api/auth", json={"contrasena": TEST_PASSWORD + "\x00"})
        assert response.status_code == 200

    def test_unconfigured_password_fails_closed(self, fake_client):
        app = create_app(make_settings(api_password=None), client=fake_client)
        with TestClient(app) as client:
            response = client.post("/api/auth", json={"contrasena": "anything"})
        assert response.status_code == 401


class TestStatus:
    def test_status_is_public(self, client, gateway):
        gateway.connection.apply(PairingCodeReady(code="2@pairing"))

        response = client.get("/api/estado")

        assert response.status_code == 200
        body = response.json()
        assert body["estado"] == "esperando_qr"
        assert body["codigoQR"] == "2@pairing"
        assert body["listo"] is False
        assert body["marcaTiempo"].endswith("Z")

    def test_dashboard(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "/api/estado" in response.text

    def test_security_and_correlation_headers(self, client):
        response = client.get("/api/estado", headers={"X-Correlation-ID": "cid-123"})
        assert response.headers["X-Correlation-ID"] == "cid-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "max-age=31536000" in response.headers["Strict-Transport-Security"]


class TestSendMessage:
    def test_requires_token(self, client):
        response = client.post(
            "/api/enviar-mensaje", json={"destino": REGISTERED_NUMBER, "mensaje": "hola"}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "auth_required"

    def test_rejects_bad_token(self, client):
        response = client.post(
            "/api/enviar-mensaje",
            json={"destino": REGISTERED_NUMBER, "mensaje": "hola"},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "auth_invalid"

    def test_not_connected_then_sent(self, client, gateway, auth_headers, fake_client):
        payload = {"destino": REGISTERED_NUMBER, "mensaje": "hola"}

        response = client.post("/api/enviar-mensaje", json=payload, headers=auth_headers)
        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "not_connected"
        assert body["estado"] == "inicializando"

        gateway.connection.apply(Ready())
        response = client.post("/api/enviar-mensaje", json=payload, headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "exito": True,
            "idMensaje": "MSG001",
            "mensaje": "Mensaje enviado correctamente",
        }
        assert fake_client.sent[0][0] == f"{REGISTERED_NUMBER}@c.us"

    def test_api_key_header_is_accepted(self, client, ready, token):
        response = client.post(
            "/api/enviar-mensaje",
            json={"destino": REGISTERED_NUMBER, "mensaje": "hola"},
            headers={"X-API-Key": token},
        )
        assert response.status_code == 200

    def test_unregistered_number(self, client, ready, auth_headers):
        response = client.post(
            "/api/enviar-mensaje",
            json={"destino": UNREGISTERED_NUMBER, "mensaje": "hola"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "unregistered_number"

    def test_body_validation(self, client, ready, auth_headers):
        response = client.post(
            "/api/enviar-mensaje",
            json={"destino": REGISTERED_NUMBER, "mensaje": ""},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["errores"][0]["campo"] == "mensaje"

    def test_send_rate_limit(self, client, ready, auth_headers):
        payload = {"destino": REGISTERED_NUMBER, "mensaje": "hola"}
        for _ in range(10):
            assert client.post("/api/enviar-mensaje", json=payload, headers=auth_headers).status_code == 200

        response = client.post("/api/enviar-mensaje", json=payload, headers=auth_headers)

        assert response.status_code == 429
        assert response.json()["error"] == "rate_limited"
        assert int(response.headers["Retry-After"]) >= 1
        assert response.json()["retryAfter"] >= 1

    def test_send_failure_is_generic(self, client, ready, auth_headers, fake_client):
        fake_client.fail_sends = True
        response = client.post(
            "/api/enviar-mensaje",
            json={"destino": REGISTERED_NUMBER, "mensaje": "hola"},
            headers=auth_headers,
        )
        assert response.status_code == 500
        assert response.json()["error"] == "send_failed"
        assert "internal transport detail" not in response.text

    def test_read_only_token_cannot_send(self, client, ready, gateway):
        token = gateway.tokens.issue("reader", [Permission.READ_MESSAGES])
        response = client.post(
            "/api/enviar-mensaje",
            json={"destino": REGISTERED_NUMBER, "mensaje": "hola"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 403


class TestDirectoryRoutes:
    def test_groups(self, client, ready, auth_headers):
        response = client.get("/api/grupos", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["grupos"] == [
            {"id": "120363000000000001@g.us", "nombre": "Equipo", "participantes": 2}
        ]

    def test_contacts(self, client, ready, auth_headers):
        response = client.get("/api/contactos", headers=auth_headers)
        assert response.status_code == 200
        assert [c["nombre"] for c in response.json()["contactos"]] == ["Ana", "Beto"]

    def test_contacts_require_connection(self, client, auth_headers):
        response = client.get("/api/contactos", headers=auth_headers)
        assert response.status_code == 503

    def test_verify_number(self, client, ready, auth_headers):
        response = client.get(f"/api/verificar-numero/{REGISTERED_NUMBER}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"exito": True, "existe": True, "numero": REGISTERED_NUMBER}

    def test_verify_number_bad_format(self, client, ready, auth_headers):
        response = client.get("/api/verificar-numero/abcdefgh", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_destination"

    def test_verify_number_too_long(self, client, ready, auth_headers):
        response = client.get(f"/api/verificar-numero/{'1' * 25}", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


class TestInboundMessages:
    def test_read_then_drain(self, client, gateway, auth_headers):
        gateway.inbox.append(_record(1))
        gateway.inbox.append(_record(2))

        response = client.get("/api/mensajes-recibidos", headers=auth_headers)
        assert [m["idMensaje"] for m in response.json()["mensajes"]] == ["M1", "M2"]

        response = client.get("/api/mensajes-recibidos?limpiar=true", headers=auth_headers)
        body = response.json()
        assert body["mensajesLimpiados"] is True
        assert body["mensajesEliminados"] == 2
        assert [m["idMensaje"] for m in body["mensajes"]] == ["M1", "M2"]

        response = client.get("/api/mensajes-recibidos", headers=auth_headers)
        assert response.json()["mensajes"] == []

    def test_works_while_disconnected(self, client, gateway, auth_headers):
        gateway.inbox.append(_record(1))
        response = client.get("/api/mensajes-recibidos", headers=auth_headers)
        assert response.status_code == 200


class TestErrors:
    def test_unknown_route(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_payload_too_large(self, fake_client):
        app = create_app(make_settings(max_body_size=100), client=fake_client)
        with TestClient(app) as client:
            response = client.post("/api/auth", json={"contrasena": "x" * 500})
        assert response.status_code == 413
        assert response.json()["error"] == "payload_too_large"

    def test_chunked_payload_too_large(self, fake_client):
        app = create_app(make_settings(max_body_size=100), client=fake_client)
        body = b'{"contrasena": "' + b"x" * 5000 + b'"}'

        def chunks():
            for start in range(0, len(body), 64):
                yield body[start : start + 64]

        with TestClient(app) as client:
            response = client.post(
                "/api/auth", content=chunks(), headers={"Content-Type": "application/json"}
            )
        assert response.status_code == 413
        assert response.json()["error"] == "payload_too_large"

    def test_chunked_body_under_limit_is_accepted(self, fake_client):
        app = create_app(make_settings(max_body_size=1000), client=fake_client)
        body = b'{"contrasena": "' + TEST_PASSWORD.encode() + b'"}'

        with TestClient(app) as client:
            response = client.post(
                "/api/auth", content=iter([body]), headers={"Content-Type": "application/json"}
            )
        assert response.status_code == 200

    def test_general_rate_limit(self):
        app = create_app(make_settings(rate_limit_max=3), client=FakeMessagingClient())
        with TestClient(app) as client:
            for _ in range(3):
                assert client.get("/api/estado").status_code == 200
            response = client.get("/api/estado")
        assert response.status_code == 429
        assert response.json()["error"] == "rate_limited"
