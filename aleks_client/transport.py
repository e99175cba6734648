import logging
import socket
from urllib.parse import urlsplit
import xmlrpc.client

import requests
from requests.adapters import BaseAdapter, HTTPAdapter
from urllib3.connection import HTTPConnection


logger = logging.getLogger(__name__)

USER_AGENT = "aleks-client"
CDATA_OPEN = b"<![CDATA["
CDATA_CLOSE = b"]]>"

DIAL_TIMEOUT_SECONDS = 30
KEEPALIVE_SECONDS = 30
IDLE_TIMEOUT_SECONDS = 90
MAX_POOL_SIZE = 100
DEFAULT_TIMEOUT = (DIAL_TIMEOUT_SECONDS, IDLE_TIMEOUT_SECONDS)


def keepalive_socket_options() -> list[tuple[int, int, int]]:
    options = list(HTTPConnection.default_socket_options)
    options.append((socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1))
    if hasattr(socket, "TCP_KEEPIDLE"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, KEEPALIVE_SECONDS))
    if hasattr(socket, "TCP_KEEPINTVL"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, KEEPALIVE_SECONDS))
    return options


class KeepAliveAdapter(HTTPAdapter):
    """Plain HTTP adapter with TCP keep-alive probing and no automatic retries."""

    def __init__(self) -> None:
        super().__init__(pool_maxsize=MAX_POOL_SIZE, max_retries=0)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        pool_kwargs.setdefault("socket_options", keepalive_socket_options())
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)


class NormalizingAdapter(BaseAdapter):
    """Wraps another adapter to smooth over quirks of the ALEKS endpoint.

    Outbound requests get the Accept, User-Agent and Host headers the XML-RPC
    protocol expects, and compression is turned off. Inbound bodies are read
    in full and stripped of CDATA markers, which the stdlib XML-RPC
    unmarshaller would otherwise see inside string values.
    """

    def __init__(self, inner: BaseAdapter | None = None) -> None:
        super().__init__()
        self.inner = inner if inner is not None else KeepAliveAdapter()

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        request.headers["Accept"] = "*/*"
        request.headers["User-Agent"] = USER_AGENT
        request.headers["Host"] = urlsplit(request.url).hostname or ""
        request.headers["Accept-Encoding"] = "identity"

        response = self.inner.send(
            request,
            stream=stream,
            timeout=DEFAULT_TIMEOUT if timeout is None else timeout,
            verify=verify,
            cert=cert,
            proxies=proxies,
        )

        # Read failures propagate as requests exceptions.
        body = response.content
        cleaned = body.replace(CDATA_OPEN, b"").replace(CDATA_CLOSE, b"")
        # Replace the consumed body with the cleaned bytes.
        response._content = cleaned
        response.headers["Content-Length"] = str(len(cleaned))
        return response

    def close(self) -> None:
        self.inner.close()


def build_session(inner: BaseAdapter | None = None) -> requests.Session:
    session = requests.Session()
    session.headers.update({"Accept-Encoding": "identity"})
    adapter = NormalizingAdapter(inner)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class SessionTransport(xmlrpc.client.Transport):
    """XML-RPC transport that sends calls through a requests session."""

    def __init__(self, session: requests.Session, *, use_https: bool = True) -> None:
        super().__init__()
        self.session = session
        self.scheme = "https" if use_https else "http"

    def request(self, host, handler, request_body, verbose=False):
        url = f"{self.scheme}://{host}{handler}"
        response = self.session.post(url, data=request_body, headers={"Content-Type": "text/xml"})
        if response.status_code != 200:
            raise xmlrpc.client.ProtocolError(url, response.status_code, response.reason, dict(response.headers))

        if verbose:
            logger.debug("xml-rpc response body: %s", response.text)

        parser, unmarshaller = self.getparser()
        parser.feed(response.content)
        parser.close()
        return unmarshaller.close()

    def close(self) -> None:
        self.session.close()
