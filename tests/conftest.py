"""Shared fixtures: a local coordinator stand-in and test certificates."""

import datetime
import ipaddress
import json
import ssl
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

PROXY_VARIABLES = (
    "HTTP_PROXY",
    "HTTPS_PROXY",
    "ALL_PROXY",
    "http_proxy",
    "https_proxy",
    "all_proxy",
)


@pytest.fixture(autouse=True)
def no_proxy_env(monkeypatch):
    """Keep ambient proxies away from requests to the local test server."""
    for name in PROXY_VARIABLES:
        monkeypatch.delenv(name, raising=False)


# ── Certificates ────────────────────────────────────────────────────────


@dataclass
class Issued:
    certificate: x509.Certificate
    key: ec.EllipticCurvePrivateKey

    @property
    def der(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.DER)

    @property
    def pem(self) -> str:
        return self.certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")

    @property
    def key_pem(self) -> str:
        return self.key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("ascii")


def issue_certificate(common_name: str, issuer: Issued | None = None, is_ca: bool = False) -> Issued:
    """Issue a certificate, self-signed when no issuer is given."""
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    signing_key = issuer.key if issuer else key
    issuer_name = issuer.certificate.subject if issuer else subject
    now = datetime.datetime.now(datetime.timezone.utc)

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signing_key.public_key()),
            critical=False,
        )
    )

    if is_ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    else:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]),
            critical=False,
        ).add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)

    return Issued(builder.sign(signing_key, hashes.SHA256()), key)


@pytest.fixture(scope="session")
def ca_cert() -> Issued:
    return issue_certificate("Test Root CA", is_ca=True)


@pytest.fixture(scope="session")
def server_cert(ca_cert) -> Issued:
    return issue_certificate("127.0.0.1", issuer=ca_cert)


# ── Coordinator stand-in ────────────────────────────────────────────────


@dataclass
class Reply:
    status: int
    body: bytes = b""
    content_type: str | None = "application/json"

    @classmethod
    def json(cls, status: int, payload) -> "Reply":
        return cls(status, json.dumps(payload).encode("utf-8"))


@dataclass
class Received:
    method: str
    path: str
    headers: dict[str, str]
    body: bytes


@dataclass
class FakeCoordinator:
    url: str = ""
    routes: dict[tuple[str, str], Reply] = field(default_factory=dict)
    received: list[Received] = field(default_factory=list)

    def route(self, method: str, path: str, reply: Reply) -> None:
        self.routes[(method, "/ci/api/v1/" + path)] = reply


def _handler_for(coordinator: FakeCoordinator):
    class Handler(BaseHTTPRequestHandler):
        protocol_version = "HTTP/1.1"

        def _handle(self):
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length else b""
            coordinator.received.append(
                Received(self.command, self.path, {k.lower(): v for k, v in self.headers.items()}, body)
            )

            reply = coordinator.routes.get((self.command, self.path), Reply(404, b"not found", "text/plain"))
            self.send_response(reply.status)
            if reply.content_type:
                self.send_header("Content-Type", reply.content_type)
            self.send_header("Content-Length", str(len(reply.body)))
            self.end_headers()
            if reply.body:
                self.wfile.write(reply.body)

        do_GET = _handle
        do_POST = _handle
        do_PUT = _handle
        do_DELETE = _handle

        def log_message(self, format, *args):
            pass

    return Handler


def _serve(coordinator: FakeCoordinator, ssl_context: ssl.SSLContext | None):
    server = ThreadingHTTPServer(("127.0.0.1", 0), _handler_for(coordinator))
    scheme = "http"
    if ssl_context is not None:
        server.socket = ssl_context.wrap_socket(server.socket, server_side=True)
        scheme = "https"
    coordinator.url = f"{scheme}://127.0.0.1:{server.server_address[1]}/"

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, thread


@pytest.fixture
def coordinator():
    """Plain HTTP coordinator stand-in."""
    fake = FakeCoordinator()
    server, thread = _serve(fake, None)
    yield fake
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


@pytest.fixture
def tls_coordinator(tmp_path, server_cert):
    """HTTPS coordinator stand-in presenting ``server_cert``."""
    cert_file = tmp_path / "server.crt"
    key_file = tmp_path / "server.key"
    cert_file.write_text(server_cert.pem)
    key_file.write_text(server_cert.key_pem)

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(str(cert_file), str(key_file))

    fake = FakeCoordinator()
    server, thread = _serve(fake, context)
    yield fake
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)
