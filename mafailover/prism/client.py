# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/prism/client.py
"""
Prism Element v2 REST client (cluster, hosts, protection domains, remote sites).
"""

from __future__ import annotations

import logging
import ssl
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
import requests.adapters
import urllib3
from requests.auth import HTTPBasicAuth

from ..core.exceptions import PrismError
from ..core.logger import Log
from .models import ClusterInfo, HostInfo, ProtectionDomain, RemoteSite, entities

PRISM_PORT = 9440
API_BASE = "/PrismGateway/services/rest/v2.0"


class Tls12Adapter(requests.adapters.HTTPAdapter):
    """HTTPS adapter pinned to TLS >= 1.2 without certificate validation."""

    def _context(self) -> ssl.SSLContext:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        ctx.minimum_version = ssl.TLSVersion.TLSv1_2
        ctx.check_hostname = False  # Prism ships self-signed certificates
        ctx.verify_mode = ssl.CERT_NONE
        return ctx

    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        kwargs["ssl_context"] = self._context()
        super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, proxy: str, **kwargs: Any) -> Any:
        kwargs["ssl_context"] = self._context()
        return super().proxy_manager_for(proxy, **kwargs)


class PrismClient:
    """
    Thin typed wrapper around one Prism Element endpoint.

    Every non-2xx answer or transport error raises PrismError carrying the
    call, the URL and (when known) the HTTP status. Nothing is retried here:
    convergence is observed by the callers' poll loops.
    """

    def __init__(
        self,
        logger: logging.Logger,
        host: str,
        user: str,
        password: str,
        *,
        port: int = PRISM_PORT,
        timeout: Optional[float] = 60.0,
        http_client: Optional[Any] = None,  # For testing/mocking
    ) -> None:
        if not (host or "").strip():
            raise ValueError("Host cannot be empty")
        if not 1 <= port <= 65535:
            raise ValueError(f"Invalid port: {port}")

        self.logger = logger
        self.host = host.strip()
        self.user = (user or "").strip()
        self.password = password or ""
        self.port = int(port)
        self.timeout = timeout

        self._http_client = http_client or requests
        self._session_pool: Optional[Any] = None

        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def __repr__(self) -> str:
        return f"PrismClient({self.host}:{self.port})"

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}{API_BASE}"

    @property
    def session(self) -> Any:
        if self._session_pool is None:
            self._session_pool = self._create_session()
        return self._session_pool

    def _create_session(self) -> Any:
        session = self._http_client.Session()
        session.verify = False
        session.auth = HTTPBasicAuth(self.user, self.password)
        session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
        session.mount("https://", Tls12Adapter(max_retries=0))
        return session

    def close(self) -> None:
        if self._session_pool is not None:
            try:
                self._session_pool.close()
            finally:
                self._session_pool = None

    # ------------------------------------------------------------------
    # transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        call = f"{method} {path}"
        Log.trace(self.logger, "Prism %s %s params=%r", method, url, params)

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=body,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PrismError(
                msg=f"Prism call {call} to {self.host} failed: {e}",
                cause=e,
                context={"call": call, "url": url},
            ) from e

        status = int(getattr(response, "status_code", 0) or 0)
        if status < 200 or status >= 300:
            detail = ""
            try:
                payload = response.json()
                if isinstance(payload, dict):
                    detail = str(payload.get("message") or payload.get("error_code") or "")
            except ValueError:
                detail = (getattr(response, "text", "") or "")[:300]
            raise PrismError(
                msg=f"Prism call {call} to {self.host} returned HTTP {status}{': ' + detail if detail else ''}",
                context={"call": call, "url": url, "status": status},
            )

        if not getattr(response, "content", b""):
            return None
        try:
            return response.json()
        except ValueError:
            return None

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get_cluster(self) -> ClusterInfo:
        payload = self._request("GET", "/cluster/")
        if not isinstance(payload, dict):
            raise PrismError(msg=f"Unexpected /cluster/ payload from {self.host}", context={"call": "GET /cluster/"})
        return ClusterInfo.from_json(payload)

    def get_hosts(self) -> List[HostInfo]:
        return [HostInfo.from_json(e) for e in entities(self._request("GET", "/hosts/"))]

    def get_protection_domains(self) -> List[ProtectionDomain]:
        return [ProtectionDomain.from_json(e) for e in entities(self._request("GET", "/protection_domains/"))]

    def get_protection_domain(self, name: str) -> Optional[ProtectionDomain]:
        for pd in self.get_protection_domains():
            if pd.name == name:
                return pd
        return None

    def get_remote_sites(self) -> List[RemoteSite]:
        return [RemoteSite.from_json(e) for e in entities(self._request("GET", "/remote_sites/"))]

    # ------------------------------------------------------------------
    # metro availability mutations
    # ------------------------------------------------------------------

    @staticmethod
    def _pd_path(name: str, action: str) -> str:
        return f"/protection_domains/{quote(name, safe='')}/{action}"

    def promote(self, pd_name: str, *, force: bool = True) -> Any:
        self.logger.info("Promoting protection domain %s on %s", pd_name, self.host)
        return self._request(
            "POST",
            self._pd_path(pd_name, "promote"),
            params={"force": "true" if force else "false"},
            body={},
        )

    def metro_disable(self, pd_name: str) -> Any:
        self.logger.info("Disabling metro availability for %s on %s", pd_name, self.host)
        return self._request("POST", self._pd_path(pd_name, "metro_avail_disable"), body={})

    def metro_enable(self, pd_name: str, *, re_enable: bool = True) -> Any:
        self.logger.info("Re-enabling metro availability for %s on %s", pd_name, self.host)
        return self._request(
            "POST",
            self._pd_path(pd_name, "metro_avail_enable"),
            params={"re_enable": "true" if re_enable else "false"},
            body={},
        )
