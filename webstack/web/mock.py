"""
Build handler Requests without a server, for unit tests of API and HTTP handles.
"""

from typing import Any, Dict, Optional

from aiohttp.test_utils import make_mocked_request

from .identity import Identity
from .types import Request, dumps


def mock_request(user_data: Any = None, parameters: Optional[Dict[str, str]] = None, body: Any = None,
                 method: str = 'POST', path: str = '/', headers: Optional[Dict[str, str]] = None) -> Request:
    """
    Make a Request as the pipeline would hand it to a handle.

    ``user_data`` becomes the caller identity (None means unauthenticated),
    ``parameters`` the path parameters and ``body`` is encoded as the JSON
    request body.
    """
    raw_body = dumps(body).encode('utf-8') if body is not None else b''
    headers = dict(headers or {})
    headers.setdefault('Content-Type', 'application/json')
    headers.setdefault('Content-Length', str(len(raw_body)))
    raw = make_mocked_request(method, path, headers=headers, match_info=dict(parameters or {}))
    return Request(
        raw,
        parameters=parameters,
        identity=Identity.coerce(user_data),
        body=raw_body,
    )
