"""Supabase message store over the PostgREST API.

Uses httpx.AsyncClient against {SUPABASE_URL}/rest/v1/{table}:
- insert:     POST   with Prefer: return=representation
- delete:     DELETE ?id=eq.{id} / ?id=in.(a,b,c)
- select_all: GET    ?select=*&order=parent_id.desc.nullsfirst,...

Change notifications:
- Writes made through this client are echoed to local listeners once the
  backend has acknowledged them.
- Realtime payloads delivered by whatever transport the host wires up
  (Supabase Realtime postgres_changes) are fed in via
  handle_realtime_payload(). The transport itself lives outside this client.
"""

from collections.abc import Sequence
from typing import Any

import httpx
import pydantic

from converse.errors import ConverseErrorCode, StoreError
from converse.logging import get_logger
from converse.schemas.message import Message, NewMessage
from converse.store.base import SNAPSHOT_ORDER, ChangeEvent, MessageStoreBase, OrderBy

logger = get_logger(__name__)

# PostgreSQL foreign_key_violation
FOREIGN_KEY_VIOLATION = "23503"


def build_order_param(order_by: Sequence[OrderBy]) -> str:
    """Render ordering terms as a PostgREST order parameter."""
    terms = []
    for term in order_by:
        if term.descending:
            terms.append(f"{term.field}.desc.nullsfirst")
        else:
            terms.append(f"{term.field}.asc.nullslast")
    return ",".join(terms)


class SupabaseMessageStore(MessageStoreBase):
    """Production message store backed by a Supabase table."""

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        *,
        table: str = "messages",
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 30.0,
        echo_writes: bool = True,
    ):
        """Initialize the store client.

        Args:
            supabase_url: Supabase project URL (e.g., https://xxx.supabase.co).
            service_key: Supabase service role key.
            table: Table holding message rows.
            client: Shared httpx.AsyncClient. A private client is created
                (and closed by aclose) when omitted.
            timeout_s: Per-request timeout in seconds.
            echo_writes: Emit change events for writes made through this client.
        """
        super().__init__()
        self._base_url = supabase_url.rstrip("/")
        self._table = table
        self._rest_url = f"{self._base_url}/rest/v1/{table}"
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._timeout = httpx.Timeout(timeout_s, connect=10.0)
        self._echo_writes = echo_writes

    @property
    def rest_url(self) -> str:
        return self._rest_url

    async def insert(self, record: NewMessage) -> Message:
        """Insert a row and return the stored representation."""
        response = await self._request(
            "POST",
            json=record.model_dump(),
            prefer="return=representation",
        )
        rows = self._decode_rows("POST", response)
        if not rows:
            raise StoreError("Insert returned no row", code=ConverseErrorCode.E_STORE_ERROR)

        message = self._to_messages("POST", rows[:1])[0]
        if self._echo_writes:
            self.emit(ChangeEvent("INSERT", self._table, record=rows[0]))
        return message

    async def delete_by_id(self, message_id: int) -> None:
        """Delete one row by id."""
        await self._delete({"id": f"eq.{message_id}"})

    async def delete_many(self, message_ids: Sequence[int]) -> None:
        """Delete several rows with a single statement."""
        if not message_ids:
            return
        id_list = ",".join(str(message_id) for message_id in message_ids)
        await self._delete({"id": f"in.({id_list})"})

    async def select_all(self, order_by: Sequence[OrderBy] = SNAPSHOT_ORDER) -> list[Message]:
        """Fetch every row in the requested order."""
        params = {"select": "*"}
        if order_by:
            params["order"] = build_order_param(order_by)

        response = await self._request("GET", params=params)
        return self._to_messages("GET", self._decode_rows("GET", response))

    def handle_realtime_payload(self, payload: dict[str, Any]) -> None:
        """Dispatch a realtime postgres_changes payload to listeners.

        Payloads for other tables are ignored.
        """
        event = ChangeEvent.from_realtime_payload(payload)
        if event.table != self._table:
            logger.debug("realtime_payload_ignored", table=event.table)
            return
        self.emit(event)

    async def aclose(self) -> None:
        """Close the private HTTP client, if this store created one."""
        await super().aclose()
        if self._owns_client:
            await self._client.aclose()

    async def _delete(self, params: dict[str, str]) -> None:
        response = await self._request("DELETE", params=params, prefer="return=representation")
        if not self._echo_writes:
            return
        for message in self._to_messages("DELETE", self._decode_rows("DELETE", response)):
            self.emit(ChangeEvent("DELETE", self._table, old_record={"id": message.id}))

    def _decode_rows(self, method: str, response: httpx.Response) -> list[dict[str, Any]]:
        """Parse a successful response body as a list of row objects."""
        if not response.content:
            return []
        try:
            rows = response.json()
        except ValueError as e:
            logger.warning("store_response_undecodable", method=method, status_code=response.status_code)
            raise StoreError("Message store returned a malformed response") from e

        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            logger.warning("store_response_unexpected_shape", method=method, body_type=type(rows).__name__)
            raise StoreError("Message store returned a malformed response")
        return rows

    def _to_messages(self, method: str, rows: list[dict[str, Any]]) -> list[Message]:
        try:
            return [Message.model_validate(row) for row in rows]
        except pydantic.ValidationError as e:
            logger.warning("store_row_invalid", method=method, error_count=e.error_count())
            raise StoreError("Message store returned an invalid row") from e

    async def _request(
        self,
        method: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = await self._client.request(
                method,
                self._rest_url,
                params=params,
                json=json,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("store_request_failed", method=method, error=str(e))
            raise StoreError(
                f"Message store unreachable: {e}",
                code=ConverseErrorCode.E_STORE_UNAVAILABLE,
            ) from e

        if response.status_code >= 400:
            self._raise_for_status(method, response)
        return response

    def _raise_for_status(self, method: str, response: httpx.Response) -> None:
        try:
            body = response.json()
        except ValueError:
            body = None

        pg_code = body.get("code") if isinstance(body, dict) else None
        logger.warning(
            "store_request_rejected",
            method=method,
            status_code=response.status_code,
            pg_code=pg_code,
        )

        if pg_code == FOREIGN_KEY_VIOLATION:
            raise StoreError(
                "Parent message does not exist",
                code=ConverseErrorCode.E_PARENT_NOT_FOUND,
            )
        if response.status_code >= 500:
            raise StoreError(
                f"Message store unavailable: {response.status_code}",
                code=ConverseErrorCode.E_STORE_UNAVAILABLE,
            )
        raise StoreError(
            f"Message store rejected {method}: {response.status_code} {response.text}",
            code=ConverseErrorCode.E_STORE_ERROR,
        )
