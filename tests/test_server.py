import http.client
import json
import threading
import unittest
from typing import Dict, Optional, Tuple

from service_fakes import AUTH_HEADERS, make_handlers, multipart_body, sample_record, valid_fields

from briolete_services.server import ServicesApp, ServicesHTTPServer, is_client_disconnect, is_page_path


def fake_renderer(record, regular, bold, **kwargs) -> bytes:
    return b"%PDF-1.4 " + record["code"].encode("utf-8")


class ServerRoutingTests(unittest.TestCase):
    def setUp(self) -> None:
        handlers, self.store, _, _ = make_handlers(
            [sample_record()],
            renderer=fake_renderer,
            host="127.0.0.1",
            port=0,
            max_body_bytes=64 * 1024,
        )
        app = ServicesApp(handlers.settings, handlers, handlers.gate)
        self.server = ServicesHTTPServer(app)
        self.port = self.server.server_address[1]
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()

    def tearDown(self) -> None:
        self.server.shutdown()
        self.server.server_close()
        self.thread.join(timeout=5)

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[int, Dict[str, str], bytes]:
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=5)
        try:
            conn.request(method, path, body=body, headers=headers or {})
            response = conn.getresponse()
            return response.status, dict(response.getheaders()), response.read()
        finally:
            conn.close()

    def test_health(self) -> None:
        status, _, body = self._request("GET", "/health")
        self.assertEqual(status, 200)
        self.assertEqual(json.loads(body), {"status": "ok"})

    def test_get_service_on_both_prefixes(self) -> None:
        for path in ("/services/SER2024-0001", "/api/services/SER2024-0001"):
            with self.subTest(path=path):
                status, headers, body = self._request("GET", path, headers=AUTH_HEADERS)
                self.assertEqual(status, 200)
                self.assertTrue(headers["Content-Type"].startswith("application/json"))
                self.assertEqual(json.loads(body)["service"]["code"], "SER2024-0001")

    def test_unknown_service_is_not_found(self) -> None:
        status, _, body = self._request("GET", "/api/services/UNKNOWN-CODE", headers=AUTH_HEADERS)
        self.assertEqual(status, 404)
        self.assertEqual(json.loads(body), {"error": "Servicio no encontrado"})

    def test_unauthenticated_list(self) -> None:
        status, _, body = self._request("GET", "/api/services")
        self.assertEqual(status, 401)
        self.assertEqual(json.loads(body)["error"], "No autorizado. Debes iniciar sesión.")

    def test_invoice_route(self) -> None:
        status, headers, body = self._request(
            "GET", "/api/services/SER2024-0001/invoice?paper=a4", headers=AUTH_HEADERS
        )
        self.assertEqual(status, 200)
        self.assertEqual(headers["Content-Type"], "application/pdf")
        self.assertEqual(headers["Content-Disposition"], 'inline; filename="SER2024-0001.pdf"')
        self.assertEqual(headers["Cache-Control"], "no-store")
        self.assertEqual(body, b"%PDF-1.4 SER2024-0001")

    def test_invoice_for_non_ascii_code(self) -> None:
        self.store.records.append(sample_record("SER2024-Ñ01"))

        status, headers, body = self._request(
            "GET", "/api/services/SER2024-%C3%9101/invoice", headers=AUTH_HEADERS
        )

        self.assertEqual(status, 200)
        self.assertIn('filename="SER2024-N01.pdf"', headers["Content-Disposition"])
        self.assertEqual(body, "%PDF-1.4 SER2024-Ñ01".encode("utf-8"))

    def test_create_through_http(self) -> None:
        content_type, payload = multipart_body(valid_fields())
        headers = dict(AUTH_HEADERS, **{"Content-Type": content_type})

        status, _, body = self._request("POST", "/api/services", body=payload, headers=headers)

        self.assertEqual(status, 201)
        self.assertEqual(json.loads(body)["service"]["cliente"], "Ana")

    def test_oversized_body_is_rejected_before_reading(self) -> None:
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=5)
        try:
            conn.putrequest("POST", "/api/services")
            conn.putheader("Authorization", AUTH_HEADERS["Authorization"])
            conn.putheader("Content-Type", "application/x-www-form-urlencoded")
            conn.putheader("Content-Length", str(65 * 1024))
            conn.endheaders()
            response = conn.getresponse()
            status = response.status
            response.read()
        finally:
            conn.close()

        self.assertEqual(status, 413)
        self.assertEqual(self.store.writes, [])

    def test_missing_content_length(self) -> None:
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=5)
        try:
            conn.putrequest("PUT", "/api/services/SER2024-0001")
            conn.putheader("Authorization", AUTH_HEADERS["Authorization"])
            conn.endheaders()
            response = conn.getresponse()
            status = response.status
            response.read()
        finally:
            conn.close()

        self.assertEqual(status, 411)

    def test_delete_through_http(self) -> None:
        body = json.dumps({"codes": ["SER2024-0001"]}).encode("utf-8")
        headers = dict(AUTH_HEADERS, **{"Content-Type": "application/json"})

        status, _, response = self._request("DELETE", "/api/services", body=body, headers=headers)

        self.assertEqual(status, 200)
        self.assertEqual(json.loads(response), {"ok": True, "deleted": 1})

    def test_page_redirects(self) -> None:
        status, headers, _ = self._request("GET", "/signup")
        self.assertEqual(status, 308)
        self.assertEqual(headers["Location"], "/login")

        status, headers, _ = self._request("GET", "/app")
        self.assertEqual(status, 302)
        self.assertEqual(headers["Location"], "/login")

        status, headers, _ = self._request("GET", "/login", headers=AUTH_HEADERS)
        self.assertEqual(status, 302)
        self.assertEqual(headers["Location"], "/app")

        status, headers, _ = self._request("GET", "/", headers=AUTH_HEADERS)
        self.assertEqual(status, 302)
        self.assertEqual(headers["Location"], "/app")

    def test_pages_are_served(self) -> None:
        status, headers, body = self._request("GET", "/login")
        self.assertEqual(status, 200)
        self.assertTrue(headers["Content-Type"].startswith("text/html"))
        self.assertIn("Iniciar sesión", body.decode("utf-8"))

    def test_unknown_route(self) -> None:
        status, _, _ = self._request("GET", "/nope")
        self.assertEqual(status, 404)


class ServerHelperTests(unittest.TestCase):
    def test_is_page_path(self) -> None:
        self.assertTrue(is_page_path("/"))
        self.assertTrue(is_page_path("/app/services"))
        self.assertFalse(is_page_path("/api/services"))

    def test_is_client_disconnect(self) -> None:
        self.assertTrue(is_client_disconnect(BrokenPipeError()))
        self.assertTrue(is_client_disconnect(ConnectionResetError()))
        self.assertFalse(is_client_disconnect(ValueError("x")))


if __name__ == "__main__":
    unittest.main()
