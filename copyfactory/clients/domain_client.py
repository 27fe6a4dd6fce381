# copyfactory/clients/domain_client.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from copyfactory.config import DEFAULT_DOMAIN, RetryOptions
from copyfactory.errors import ApiError, InternalError
from copyfactory.infra import HttpPort, is_host_failure
from copyfactory.utils.logger import logger, mask


@dataclass
class AccountInfo:
    id: str
    regions: List[str] = field(default_factory=list)


@dataclass
class SignalClientHost:
    host: str               # resolved url of the first reachable region
    region: str
    regions: List[str]      # every region the account may be served from, in order
    domain: str


@dataclass
class _HostCacheEntry:
    url: str
    domain: str
    last_updated: float


class DomainClient:
    """
    Resolves CopyFactory hosts for the configured domain and the regional hosts
    used by signal requests, and sends authenticated requests through the transport.
    """
    HOST_CACHE_TTL_S = 10 * 60

    def __init__(self, http_client: HttpPort, token: str, domain: str = DEFAULT_DOMAIN) -> None:
        self._http = http_client
        self._token = token
        self._domain = domain
        self._url_cache: Optional[_HostCacheEntry] = None
        self._region_cache: Dict[str, _HostCacheEntry] = {}
        self._account_cache: Dict[str, AccountInfo] = {}
        logger.debug(f"DomainClient init domain={domain} token={mask(token)}")

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def token(self) -> str:
        return self._token

    @property
    def retry_opts(self) -> RetryOptions:
        return self._http.retry_opts

    @property
    def _provisioning_url(self) -> str:
        return f"https://mt-provisioning-api-v1.{self._domain}"

    def _auth_headers(self) -> Dict[str, str]:
        return {"auth-token": self._token}

    # ---- plain requests ------------------------------------------------------------
    async def request(self, method: str, url: str, *, params: Optional[Mapping[str, Any]] = None,
                      json_body: Any = None, extended_timeout: bool = False) -> Any:
        return await self._http.request(method, url, params=params, json_body=json_body,
                                        headers=self._auth_headers(), extended_timeout=extended_timeout)

    async def request_copyfactory(self, method: str, path: str, *, params: Optional[Mapping[str, Any]] = None,
                                  json_body: Any = None, extended_timeout: bool = False) -> Any:
        host = await self._get_copyfactory_host()
        try:
            return await self.request(method, host + path, params=params, json_body=json_body,
                                      extended_timeout=extended_timeout)
        except ApiError as err:
            if is_host_failure(err):
                logger.warning(f"CopyFactory host {host} unreachable, host cache invalidated")
                self.invalidate_host_cache()
            raise

    # ---- host resolution -----------------------------------------------------------
    async def _resolve_domain(self, region: Optional[str] = None) -> str:
        resp = await self.request(
            "GET", f"{self._provisioning_url}/users/current/servers/mt-client-api",
            params={"region": region},
        )
        domain = resp.get("domain") if isinstance(resp, dict) else None
        if not domain:
            raise InternalError(f"Unexpected host resolution payload: {resp!r}")
        return domain

    async def _get_copyfactory_host(self) -> str:
        entry = self._url_cache
        if entry is None or time.monotonic() - entry.last_updated > self.HOST_CACHE_TTL_S:
            domain = await self._resolve_domain()
            entry = _HostCacheEntry(url=f"https://copyfactory-api-v1.{domain}", domain=domain,
                                    last_updated=time.monotonic())
            self._url_cache = entry
            logger.debug(f"CopyFactory host resolved: {entry.url}")
        return entry.url

    def invalidate_host_cache(self, region: Optional[str] = None) -> None:
        if region is None:
            self._url_cache = None
        else:
            self._region_cache.pop(region, None)

    async def _resolve_region_host(self, region: str) -> _HostCacheEntry:
        cached = self._region_cache.get(region)
        if cached is not None:
            return cached
        domain = await self._resolve_domain(region)
        entry = _HostCacheEntry(url=f"https://copyfactory-api-v1.{region}.{domain}", domain=domain,
                                last_updated=time.monotonic())
        self._region_cache[region] = entry
        logger.debug(f"Signal host for region {region} resolved: {entry.url}")
        return entry

    async def get_signal_client_host(self, regions: Sequence[str]) -> SignalClientHost:
        """Return the host of the first region in `regions` that resolves."""
        last_err: Optional[ApiError] = None
        for region in regions:
            try:
                entry = await self._resolve_region_host(region)
            except ApiError as err:
                logger.warning(f"Failed to resolve signal host for region {region}: {err}")
                last_err = err
                continue
            return SignalClientHost(host=entry.url, region=region, regions=list(regions), domain=entry.domain)
        if last_err is not None:
            raise last_err
        raise InternalError("No regions to resolve a signal client host for")

    async def get_account_info(self, account_id: str) -> AccountInfo:
        """Primary account id and its regions (primary region first, then replicas)."""
        cached = self._account_cache.get(account_id)
        if cached is not None:
            return cached

        async def get_account(id_: str) -> Dict[str, Any]:
            return await self.request("GET", f"{self._provisioning_url}/users/current/accounts/{id_}")

        account = await get_account(account_id)
        if not isinstance(account, dict):
            raise InternalError(f"Unexpected account payload: {account!r}")
        primary_id = account.get("primaryAccountId")
        if primary_id:
            account = await get_account(primary_id)
            if not isinstance(account, dict):
                raise InternalError(f"Unexpected account payload: {account!r}")
        else:
            primary_id = account.get("_id") or account.get("id") or account_id

        regions = [account["region"]] if account.get("region") else []
        for replica in account.get("accountReplicas") or []:
            region = replica.get("region")
            if region and region not in regions:
                regions.append(region)

        info = AccountInfo(id=primary_id, regions=regions)
        self._account_cache[account_id] = info
        return info

    # ---- signal requests -----------------------------------------------------------
    async def _signal_candidates(self, host: SignalClientHost) -> List[str]:
        ordered = [host.region] + [r for r in host.regions if r != host.region]
        candidates: List[str] = []
        last_err: Optional[ApiError] = None
        for region in ordered:
            try:
                entry = await self._resolve_region_host(region)
            except ApiError as err:
                logger.warning(f"Failed to resolve signal host for region {region}: {err}")
                last_err = err
                continue
            if entry.url not in candidates:
                candidates.append(entry.url)
        if not candidates:
            raise last_err or InternalError("No signal hosts available")
        return candidates

    async def request_signal(self, method: str, path: str, host: SignalClientHost, *,
                             params: Optional[Mapping[str, Any]] = None, json_body: Any = None) -> Any:
        candidates = await self._signal_candidates(host)
        try:
            return await self._http.request_with_failover(method, path, candidates, params=params,
                                                          json_body=json_body, headers=self._auth_headers())
        except ApiError as err:
            if is_host_failure(err):
                for region, entry in list(self._region_cache.items()):
                    if entry.url in candidates:
                        self.invalidate_host_cache(region)
                logger.warning(f"All signal hosts failed ({', '.join(candidates)}), region cache invalidated")
            raise
