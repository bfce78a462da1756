"""Sankhya MGE service endpoints.

Services:
  - MobileLoginSP.login
  - DbExplorerSP.executeQuery
  - DatasetSP.save

Every service answers ``{"status": ..., "statusMessage": ..., "responseBody": ...}``
encoded as ISO-8859-1 JSON. ``status="1"`` is success and ``status="3"`` means
the session id is no longer accepted.
"""

from __future__ import annotations

import logging
from typing import Any

from fleetsync._constants import (
    SANKHYA_ENCODING,
    SANKHYA_SERVICE_PATH,
    SERVICE_LOGIN,
    SERVICE_QUERY,
    SERVICE_SAVE,
    STATUS_OK,
    STATUS_UNAUTHORIZED,
)
from fleetsync._redact import redact_for_log
from fleetsync._transport import Transport
from fleetsync.config import DestinationConfig
from fleetsync.exceptions import (
    DestinationAuthError,
    DestinationError,
    DestinationSessionExpiredError,
    DestinationTransientError,
    TransportError,
)
from fleetsync.session import Credential

_logger = logging.getLogger(__name__)


def service_url(base_url: str, service_name: str) -> str:
    return f"{base_url}{SANKHYA_SERVICE_PATH}?serviceName={service_name}&outputType=json"


def build_login_request(config: DestinationConfig) -> dict[str, Any]:
    """Build the ``MobileLoginSP.login`` body."""
    return {
        "serviceName": SERVICE_LOGIN,
        "requestBody": {
            "NOMUSU": {"$": config.username},
            "INTERNO": {"$": config.password},
            "KEEPCONNECTED": {"$": "S"},
        },
    }


def parse_login_response(response: Any) -> str:
    """Extract the jsessionid from a login answer.

    Raises
    ------
    DestinationAuthError
        If the server rejected the credentials.
    DestinationError
        If the answer is successful but carries no session id.
    """
    if not isinstance(response, dict):
        raise DestinationError("Login response is not a JSON object", service=SERVICE_LOGIN)

    status = str(response.get("status", ""))
    message = str(response.get("statusMessage", "") or "")
    if status != STATUS_OK:
        raise DestinationAuthError(
            f"Sankhya authentication failed: {message or 'status=' + status}",
            status=status,
            service=SERVICE_LOGIN,
        )

    body = response.get("responseBody")
    jsessionid = body.get("jsessionid") if isinstance(body, dict) else None
    if isinstance(jsessionid, dict):
        jsessionid = jsessionid.get("$")
    if not isinstance(jsessionid, str) or not jsessionid.strip():
        raise DestinationError("Login response missing jsessionid", status=status, service=SERVICE_LOGIN)
    return jsessionid.strip()


def _transient(exc: TransportError, service: str) -> DestinationTransientError:
    return DestinationTransientError(f"Sankhya {service} failed: {exc}", service=service)


async def login(config: DestinationConfig, transport: Transport, base_url: str) -> Credential:
    """Open a session on *base_url* and return it as a credential."""
    _logger.info("Authenticating on Sankhya at %s", base_url)
    try:
        response = await transport.request_json(
            "POST",
            service_url(base_url, SERVICE_LOGIN),
            payload=build_login_request(config),
            encoding=SANKHYA_ENCODING,
        )
    except TransportError as exc:
        raise _transient(exc, SERVICE_LOGIN) from exc

    return Credential(token=parse_login_response(response), endpoint=base_url)


async def call_service(
    transport: Transport,
    credential: Credential,
    service_name: str,
    request_body: dict[str, Any],
) -> dict[str, Any]:
    """Call an authenticated service on the endpoint the credential belongs to.

    Returns the ``responseBody`` (``{}`` when absent).
    """
    if not credential.endpoint:
        raise DestinationError("Credential is not bound to an endpoint", service=service_name)

    try:
        response = await transport.request_json(
            "POST",
            service_url(credential.endpoint, service_name),
            payload={"serviceName": service_name, "requestBody": request_body},
            headers={"cookie": f"JSESSIONID={credential.token}"},
            encoding=SANKHYA_ENCODING,
        )
    except TransportError as exc:
        raise _transient(exc, service_name) from exc

    if not isinstance(response, dict):
        raise DestinationError(f"Sankhya {service_name} returned a non-object body", service=service_name)

    status = str(response.get("status", ""))
    message = str(response.get("statusMessage", "") or "")
    if status == STATUS_OK:
        body = response.get("responseBody")
        return body if isinstance(body, dict) else {}
    if status == STATUS_UNAUTHORIZED:
        raise DestinationSessionExpiredError(
            f"Sankhya session rejected on {service_name}: {message or 'unauthorized'}",
            status=status,
            service=service_name,
        )
    _logger.debug("Sankhya %s error response: %s", service_name, redact_for_log(response))
    raise DestinationError(
        f"Sankhya {service_name} failed: {message or 'unknown error'} (status={status})",
        status=status,
        service=service_name,
    )


async def execute_query(transport: Transport, credential: Credential, sql: str) -> list[list[Any]]:
    """Run a read-only SQL query and return its rows as positional lists."""
    _logger.debug("Sankhya query: %s", sql)
    body = await call_service(transport, credential, SERVICE_QUERY, {"sql": sql, "params": {}})
    rows = body.get("rows") or []
    return [row for row in rows if isinstance(row, list)]


async def save_records(
    transport: Transport,
    credential: Credential,
    *,
    entity_name: str,
    dataset_id: str,
    fields: list[str],
    records: list[dict[str, Any]],
) -> None:
    """Append rows to *entity_name* through ``DatasetSP.save``."""
    await call_service(
        transport,
        credential,
        SERVICE_SAVE,
        {
            "dataSetID": dataset_id,
            "entityName": entity_name,
            "standAlone": False,
            "fields": fields,
            "records": records,
        },
    )
