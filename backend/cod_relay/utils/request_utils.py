# /cod_relay/utils/request_utils.py
from typing import Any, Optional
from fastapi import Request

def get_remote_address(request: Request) -> str:
    """
    Safely returns the client's IP address from a request object.
    """
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


async def read_json_body(request: Request) -> Optional[Any]:
    """Decoded JSON body, or None when the body is empty or not JSON."""
    try:
        return await request.json()
    except ValueError:
        return None
