"""Coordinator API client.

Talks JSON over HTTP(S) to the job coordinator. The TLS transport is rebuilt
whenever the CA file on disk changes, which lets the agent bootstrap trust on
first use: every call returns the certificate chain the server presented (or
the CA bundle we trusted) so the caller can persist it as the CA file for the
next connection.

Failures never escape ``do_json``: they are returned as a ``CallResult`` with
a negative status code.
"""

import json
import os
import ssl
import time
from typing import Any

import httpx
import structlog
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from pydantic import BaseModel

from ... import user_agent
from ...models.coordinator import CallResult, RunnerCredentials, TLSConnectionState
from ...models.errors import (
    ConfigError,
    DecodeError,
    EncodeError,
    ProtocolError,
    RequestError,
    TransportError,
)

logger = structlog.get_logger(__name__)

CI_PATH = "/ci"
API_PREFIX = "/api/v1/"
JSON_CONTENT_TYPE = "application/json"

MIN_TLS_VERSION = ssl.TLSVersion.TLSv1_2

DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_KEEPALIVE_EXPIRY = 30.0


def fix_ci_url(url: str) -> str:
    """Strip trailing slashes and make sure the URL ends with ``/ci``.

    Applying it twice gives the same result.
    """
    url = url.rstrip("/")
    if not url.endswith(CI_PATH):
        url += CI_PATH
    return url


def _der_bytes(cert: Any) -> bytes:
    # 3.13+ returns DER bytes, _ssl.Certificate objects before that
    if isinstance(cert, bytes):
        return cert
    return ssl.PEM_cert_to_DER_cert(cert.public_bytes())


def tls_state_from_ssl_object(ssl_object: ssl.SSLSocket | ssl.SSLObject) -> TLSConnectionState:
    """Collect the verified certificate chain of an established TLS connection.

    Unverified connections report no chains.
    """
    if ssl_object.context.verify_mode == ssl.CERT_NONE:
        return TLSConnectionState()

    get_verified_chain = getattr(ssl_object, "get_verified_chain", None)
    if get_verified_chain is None:
        # Public since Python 3.13; the underlying _ssl object has it from 3.10
        get_verified_chain = getattr(getattr(ssl_object, "_sslobj", None), "get_verified_chain", None)

    if get_verified_chain is not None:
        chain = [_der_bytes(cert) for cert in get_verified_chain() or []]
    else:
        leaf = ssl_object.getpeercert(binary_form=True)
        chain = [leaf] if leaf else []

    return TLSConnectionState(verified_chains=[chain] if chain else [])


def _tls_state(response: httpx.Response) -> TLSConnectionState | None:
    stream = response.extensions.get("network_stream")
    if stream is None:
        return None
    ssl_object = stream.get_extra_info("ssl_object")
    if ssl_object is None:
        return None
    return tls_state_from_ssl_object(ssl_object)


def _marshal(request: Any) -> bytes:
    if isinstance(request, BaseModel):
        return request.model_dump_json(exclude_none=True).encode("utf-8")
    return json.dumps(request).encode("utf-8")


class CoordinatorClient:
    """HTTP client for one set of coordinator credentials.

    The client owns an ``httpx.Client`` as its transport and replaces it when
    the CA file is modified. The check-then-rebuild sequence is not
    synchronized: callers sharing one instance between threads must serialize
    access themselves.

    Args:
        credentials: Coordinator URL, token and optional CA file
        certificate_directory: Directory with per-host CA bundles, used when
            the credentials name no CA file
        skip_verify: Disable TLS certificate verification
        connect_timeout: Budget for establishing a connection
        keepalive_expiry: Idle time after which pooled connections are dropped

    Raises:
        ConfigError: The URL is malformed or not http/https.
    """

    def __init__(
        self,
        credentials: RunnerCredentials,
        certificate_directory: str | None = None,
        skip_verify: bool = True,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        keepalive_expiry: float = DEFAULT_KEEPALIVE_EXPIRY,
    ):
        try:
            url = httpx.URL(fix_ci_url(credentials.url) + API_PREFIX)
        except httpx.InvalidURL as e:
            raise ConfigError(f"invalid coordinator URL {credentials.url!r}: {e}") from e

        if url.scheme not in ("http", "https"):
            raise ConfigError("only http or https scheme supported")
        if not url.host:
            raise ConfigError(f"invalid coordinator URL {credentials.url!r}: missing host")

        self.credentials = credentials
        self.url = url
        self.ca_file = credentials.tls_ca_file or ""
        self.skip_verify = skip_verify

        if certificate_directory and not self.ca_file:
            self.ca_file = os.path.join(certificate_directory, f"{url.host}.crt")

        self._connect_timeout = connect_timeout
        self._keepalive_expiry = keepalive_expiry
        self._transport: httpx.Client | None = None
        self._ca_data: bytes = b""
        self._update_time: float = 0.0

    # -- Transport -----------------------------------------------------------------

    @property
    def transport(self) -> httpx.Client | None:
        return self._transport

    def ensure_transport(self) -> httpx.Client:
        """Return a transport, rebuilding it if the CA file changed since the last build."""
        if self._transport is not None and self.ca_file:
            try:
                modified = os.stat(self.ca_file).st_mtime
            except OSError:
                modified = None
            # certificate got modified
            if modified is not None and self._update_time < modified:
                logger.debug("CA file changed, rebuilding transport", path=self.ca_file)
                self._transport.close()
                self._transport = None

        if self._transport is None:
            self._update_time = time.time()
            self._transport = self.create_transport()

        return self._transport

    def create_transport(self) -> httpx.Client:
        """Build a new transport from the current TLS settings."""
        return httpx.Client(
            verify=self._create_ssl_context(),
            trust_env=True,
            timeout=httpx.Timeout(None, connect=self._connect_timeout),
            limits=httpx.Limits(keepalive_expiry=self._keepalive_expiry),
        )

    def _create_ssl_context(self) -> ssl.SSLContext:
        context = self._new_ssl_context()

        if self.skip_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            return context

        if self.ca_file:
            ca_context = self._load_ca_file()
            if ca_context is not None:
                return ca_context

        context.load_default_certs()
        return context

    def _new_ssl_context(self) -> ssl.SSLContext:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.minimum_version = MIN_TLS_VERSION
        return context

    def _load_ca_file(self) -> ssl.SSLContext | None:
        """Context trusting only the CA file, or ``None`` if it can't be used.

        A missing file is normal before the first contact and is not logged.
        """
        logger.debug("Trying to load CA file", path=self.ca_file)

        try:
            with open(self.ca_file, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Failed to load CA file", path=self.ca_file, error=str(e))
            return None

        context = self._new_ssl_context()
        try:
            context.load_verify_locations(cadata=data.decode("ascii"))
        except (ValueError, ssl.SSLError) as e:
            logger.error("Failed to parse PEM in CA file", path=self.ca_file, error=str(e))
            return None

        self._ca_data = data
        return context

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # -- Trust chain -----------------------------------------------------------------

    def get_ca_chain(self, tls_state: TLSConnectionState | None) -> str:
        """PEM chain to persist for the next connection.

        The CA bundle we loaded is echoed back verbatim. Otherwise the
        verified chains of the connection are flattened, dropping certificates
        already seen (by signature) and keeping first-seen order.
        """
        if self._ca_data:
            return self._ca_data.decode("ascii")

        if tls_state is None:
            return ""

        certificates: list[x509.Certificate] = []
        seen_signatures: set[str] = set()

        for verified_chain in tls_state.verified_chains:
            for der in verified_chain:
                try:
                    certificate = x509.load_der_x509_certificate(der)
                except ValueError as e:
                    logger.warning("Failed to parse certificate from chain", error=str(e))
                    continue

                signature = certificate.signature.hex()
                if signature in seen_signatures:
                    continue

                seen_signatures.add(signature)
                certificates.append(certificate)

        return "".join(
            certificate.public_bytes(serialization.Encoding.PEM).decode("ascii") for certificate in certificates
        )

    # -- Requests ------------------------------------------------------------------------

    def do(
        self,
        uri: str,
        method: str,
        body: bytes | None = None,
        content_type: str = JSON_CONTENT_TYPE,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request relative to the API base URL.

        The response is returned unread; the caller must close it.

        Raises:
            RequestError: ``uri`` cannot be resolved against the base URL.
            TransportError: The request could not be delivered.
        """
        try:
            url = self.url.join(uri)
        except (httpx.InvalidURL, TypeError) as e:
            raise RequestError(f"failed to resolve {uri!r} against {self.url}: {e}") from e

        request_headers = httpx.Headers(headers or {})
        if body is not None:
            request_headers["Content-Type"] = content_type
            request_headers["User-Agent"] = user_agent()

        transport = self.ensure_transport()
        request = transport.build_request(method, url, content=body, headers=request_headers)

        try:
            return transport.send(request, stream=True)
        except httpx.TransportError as e:
            raise TransportError(method, str(url), e) from e

    def do_json(
        self,
        uri: str,
        method: str,
        status_code: int,
        request: Any = None,
        response: type[BaseModel] | None = None,
    ) -> CallResult:
        """Exchange JSON with the coordinator.

        Args:
            uri: Path relative to the API base URL
            method: HTTP method
            status_code: Status on which ``response`` is decoded
            request: Pydantic model or JSON-serializable object to send
            response: Model class to decode the body into

        Returns:
            CallResult with the received status, or a negative status code
            for client-side failures. A status other than ``status_code`` is
            not a failure.
        """
        body = None
        if request is not None:
            try:
                body = _marshal(request)
            except (TypeError, ValueError) as e:
                error = EncodeError(f"failed to marshal request object: {e}")
                return CallResult(-1, str(error), error=error)

        headers = {}
        if response is not None:
            headers["Accept"] = JSON_CONTENT_TYPE

        try:
            res = self.do(uri, method, body, JSON_CONTENT_TYPE, headers)
        except (RequestError, TransportError) as e:
            return CallResult(-1, str(e), error=e)

        try:
            tls_state = _tls_state(res)
            payload = None
            if res.status_code == status_code and response is not None:
                content_type = res.headers.get("Content-Type", "")
                if content_type != JSON_CONTENT_TYPE:
                    error = ProtocolError(f"Server should return application/json. Got: {content_type}")
                    return CallResult(-1, str(error), error=error)

                try:
                    payload = response.model_validate_json(res.read())
                except httpx.HTTPError as e:
                    error = TransportError(method, str(res.url), e)
                    return CallResult(-1, str(error), error=error)
                except ValueError as e:
                    error = DecodeError(f"Error decoding json payload {e}")
                    return CallResult(-1, str(error), error=error)

            status_text = f"{res.status_code} {res.reason_phrase}".strip()
            return CallResult(res.status_code, status_text, self.get_ca_chain(tls_state), payload)
        finally:
            self._discard(res)

    def _discard(self, res: httpx.Response) -> None:
        """Drain and close the body so the connection can be reused."""
        try:
            if not res.is_stream_consumed:
                for _ in res.iter_raw():
                    pass
        except httpx.HTTPError as e:
            logger.debug("Failed to drain response body", url=str(res.url), error=str(e))
        finally:
            res.close()
