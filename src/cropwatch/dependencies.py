"""FastAPI dependencies: shared HTTP client, caller identity and store."""
from typing import Optional

import httpx
from fastapi import Depends, Header, Request

from cropwatch.store import Caller, SupabaseStore, authenticate


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


async def get_caller(
    authorization: Optional[str] = Header(None),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> Caller:
    return await authenticate(client, authorization)


def get_store(
    caller: Caller = Depends(get_caller),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> SupabaseStore:
    return SupabaseStore(client, caller)
