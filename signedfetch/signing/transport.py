import logging
import os
from typing import List, Optional, Sequence

import httpx

from signedfetch.config import get_config, get_verify_ssl
from signedfetch.signing.exceptions import FetchServerUnreachableError
from signedfetch.signing.types import FetchResponse, SignedRequest

log = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class RemoteContentFetcher(object):
    """
    The collaborator that actually talks to the network. Signing fetchers
    wrap one of these and never do I/O themselves.
    """

    def fetch_request(self, request: SignedRequest) -> FetchResponse:
        raise NotImplementedError()

    def multi_fetch_request(
        self, requests: Sequence[SignedRequest]
    ) -> List[FetchResponse]:
        return [self.fetch_request(request) for request in requests]


class HttpxFetcher(RemoteContentFetcher):
    def __init__(
        self,
        timeouts: Optional[List[float]] = None,
        verify_ssl=None,
        client: Optional[httpx.Client] = None,
    ):
        self._timeouts = timeouts or get_config(
            "signing", "http", "timeouts", default=[10, 30]
        )
        self.verify_ssl = verify_ssl if verify_ssl is not None else get_verify_ssl(
            "signing"
        )
        self._client = client

    def get_client(self) -> httpx.Client:
        timeout = httpx.Timeout(self._timeouts[1], connect=self._timeouts[0])
        return httpx.Client(verify=self.verify_ssl, timeout=timeout)

    def _headers_for(self, request: SignedRequest) -> dict:
        headers = {"User-Agent": os.getenv("USER_AGENT", "Default")}
        if request.headers:
            headers.update(request.headers)
        if request.body is not None and not any(
            name.lower() == "content-type" for name in headers
        ):
            headers["Content-Type"] = FORM_CONTENT_TYPE
        return headers

    def _send(self, client: httpx.Client, request: SignedRequest) -> FetchResponse:
        try:
            res = client.request(
                request.method,
                request.url,
                headers=self._headers_for(request),
                content=request.body.encode() if request.body is not None else None,
            )
        except (httpx.TimeoutException, httpx.NetworkError):
            log.warning(
                "Signed fetch target was not able to be reached",
                extra=dict(method=request.method),
            )
            raise FetchServerUnreachableError(
                "Target was not able to be reached. Gateway 502. Please try again."
            )
        log.log(
            logging.WARNING if res.status_code >= 400 else logging.INFO,
            "Signed fetch HTTP %s",
            res.status_code,
            extra=dict(method=request.method),
        )
        return FetchResponse(
            status_code=res.status_code,
            headers=dict(res.headers),
            body=res.content,
        )

    def fetch_request(self, request: SignedRequest) -> FetchResponse:
        if self._client is not None:
            return self._send(self._client, request)
        with self.get_client() as client:
            return self._send(client, request)

    def multi_fetch_request(
        self, requests: Sequence[SignedRequest]
    ) -> List[FetchResponse]:
        if self._client is not None:
            return [self._send(self._client, request) for request in requests]
        with self.get_client() as client:
            return [self._send(client, request) for request in requests]
