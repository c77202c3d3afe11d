"""Thin async wrapper for the Supabase (PostgREST) endpoints we read from."""
from __future__ import annotations

from typing import List, Mapping, Optional, Sequence

import httpx


class SupabaseClient:
    """Minimal client for the chunk search RPC and the spreadsheet index table."""

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        *,
        match_function: str = "match_chunks",
        documents_table: str = "spreadsheets",
        timeout: float = 30.0,
    ) -> None:
        if not service_role_key:
            raise ValueError("Supabase service role key is required")
        self.base_url = str(base_url).rstrip("/")
        self.match_function = match_function
        self.documents_table = documents_table
        self.timeout = timeout
        self.headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
        }

    async def match_chunks(
        self,
        vector: Sequence[float],
        *,
        match_count: int,
        filter_spreadsheet_id: Optional[str] = None,
    ) -> List[Mapping[str, object]]:
        """Ranked similarity search over indexed chunks."""

        if not vector:
            return []

        payload: dict[str, object] = {
            "query_embedding": list(vector),
            "match_count": match_count,
            "filter_spreadsheet_id": filter_spreadsheet_id,
        }
        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            response = await client.post(
                f"{self.base_url}/rest/v1/rpc/{self.match_function}", json=payload
            )
            response.raise_for_status()
            data = response.json()
        if data is None:
            return []
        if not isinstance(data, list):
            raise RuntimeError(f"{self.match_function} returned malformed payload")
        return data

    async def list_documents(
        self, *, spreadsheet_id: Optional[str] = None
    ) -> List[Mapping[str, object]]:
        """Crawl status rows, oldest first."""

        params = {
            "select": "spreadsheet_id,title,url,crawl_status,last_indexed_at,drive_modified_time,error",
            "order": "first_seen_at.asc",
        }
        if spreadsheet_id is not None:
            params["spreadsheet_id"] = f"eq.{spreadsheet_id}"

        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            response = await client.get(
                f"{self.base_url}/rest/v1/{self.documents_table}", params=params
            )
            response.raise_for_status()
            data = response.json()
        if not isinstance(data, list):
            raise RuntimeError(f"{self.documents_table} returned malformed payload")
        return data

    async def health(self) -> Mapping[str, object]:
        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            response = await client.get(f"{self.base_url}/rest/v1/")
            response.raise_for_status()
            return {"status_code": response.status_code}
