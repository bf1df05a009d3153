"""HTTP client for the ledger daemon.

This is what a wallet/UI layer uses: it carries the already-resolved
principal and turns error responses back into ``LedgerError`` subclasses so
callers can branch on the kind of failure instead of on message text.
"""

from __future__ import annotations

import os
from typing import Any

import httpx

from .daemon.errors import error_from_payload
from .daemon.ledger.engine import CreditDetails

DEFAULT_BASE_URL = "http://127.0.0.1:9000"


class LedgerClient:
    def __init__(
        self,
        principal: str | None = None,
        *,
        base_url: str | None = None,
        gateway_token: str | None = None,
        timeout_seconds: float = 10.0,
        http_client: httpx.Client | None = None,
    ):
        self.principal = principal
        self.gateway_token = gateway_token if gateway_token is not None else os.getenv("CCL_GATEWAY_TOKEN")
        if http_client is not None:
            self._client = http_client
            self._owns_client = False
        else:
            url = (base_url or os.getenv("CCL_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
            self._client = httpx.Client(base_url=url, timeout=timeout_seconds, follow_redirects=False)
            self._owns_client = True

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "LedgerClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def as_principal(self, principal: str) -> "LedgerClient":
        """Same connection, different calling principal."""
        return LedgerClient(principal, gateway_token=self.gateway_token, http_client=self._client)

    def _headers(self, *, caller: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.gateway_token:
            headers["Authorization"] = f"Bearer {self.gateway_token}"
        if caller:
            if not self.principal:
                raise RuntimeError("LedgerClient needs a principal for mutating calls")
            headers["X-Principal"] = self.principal
        return headers

    def _request(self, method: str, path: str, *, caller: bool = False, json_body: dict | None = None, params: dict | None = None) -> Any:
        response = self._client.request(
            method=method,
            url=f"/api/v1{path}",
            headers=self._headers(caller=caller),
            json=json_body,
            params=params,
        )
        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            err = error_from_payload(payload) if isinstance(payload, dict) else None
            if err is not None:
                raise err
            response.raise_for_status()
        return response.json()

    # Mutations

    def record_emission(self, amount: int) -> int:
        return self._request("POST", "/emissions", caller=True, json_body={"amount": amount})["emissions"]

    def mint_credit(self, amount: int, source: str, emission_data: int = 0) -> int:
        body = {"amount": amount, "source": source, "emission_data": emission_data}
        return self._request("POST", "/credits", caller=True, json_body=body)["token_id"]

    def offset_emissions(self, token_id: int) -> int:
        return self._request("POST", f"/credits/{token_id}/offset", caller=True)["emissions"]

    def set_token_uri(self, token_id: int, uri: str) -> None:
        self._request("PUT", f"/credits/{token_id}/uri", caller=True, json_body={"uri": uri})

    # Queries

    def get_emissions(self, principal: str | None = None) -> int:
        return self._request("GET", f"/emissions/{principal or self.principal}")["emissions"]

    def get_credit_details(self, token_id: int) -> CreditDetails:
        data = self._request("GET", f"/credits/{token_id}")
        return CreditDetails(
            amount=data["amount"],
            source=data["source"],
            created_at=data["created_at"],
            emission_data=data["emission_data"],
            active=data["active"],
        )

    def get_credit(self, token_id: int) -> dict:
        return self._request("GET", f"/credits/{token_id}/full")

    def owner_of(self, token_id: int) -> str:
        return self._request("GET", f"/credits/{token_id}/owner")["owner"]

    def token_uri(self, token_id: int) -> str:
        return self._request("GET", f"/credits/{token_id}/uri")["uri"]

    def get_company_tokens(self, principal: str | None = None) -> list[int]:
        return self._request("GET", f"/companies/{principal or self.principal}/credits")["token_ids"]

    def total_supply(self) -> int:
        return self._request("GET", "/supply")["total_supply"]

    def list_events(self, *, token_id: int | None = None, principal: str | None = None, after_seq: int = 0, limit: int = 100) -> list[dict]:
        params: dict[str, Any] = {"after_seq": after_seq, "limit": limit}
        if token_id is not None:
            params["token_id"] = token_id
        if principal is not None:
            params["principal"] = principal
        return self._request("GET", "/events", params=params)["events"]
