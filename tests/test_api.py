import logging
from dataclasses import dataclass

import pytest
from aiohttp import web

from webstack.core.exceptions import Error, validation_error
from webstack.web import APIResponse, Cookie, HandleOptions, Server, ServerOptions


@dataclass
class Toggle:
    Enabled: bool


def test_add_routes(server):
    options = HandleOptions()
    handle = lambda request: True  # noqa: E731
    server.api.get('/get', handle, options)
    server.api.head('/head', handle, options)
    server.api.options('/options', handle, options)
    server.api.post('/post', handle, options)
    server.api.put('/put', handle, options)
    server.api.patch('/patch', handle, options)
    server.api.delete('/delete', handle, options)
    assert len(server.app.router.routes()) == 7


@pytest.mark.asyncio
async def test_data_envelope(server, start):
    server.api.get('/path', lambda request: True)
    client = await start(server)

    resp = await client.get('/path')
    assert resp.status == 200
    assert resp.headers['Content-Type'].startswith('application/json')
    assert await resp.json() == {'Data': True}


@pytest.mark.asyncio
async def test_none_result_is_empty_envelope(server, start):
    server.api.get('/path', lambda request: None)
    client = await start(server)

    resp = await client.get('/path')
    assert resp.status == 200
    assert await resp.json() == {}


@pytest.mark.asyncio
async def test_authenticated(server, start):
    server.api.get('/path', lambda request: request.user_data,
                   HandleOptions(authenticate_method=lambda request: 1))
    client = await start(server)

    resp = await client.get('/path')
    assert resp.status == 200
    assert await resp.json() == {'Data': 1}


@pytest.mark.asyncio
async def test_unauthenticated(server, start):
    server.api.get('/path', lambda request: True,
                   HandleOptions(authenticate_method=lambda request: None))
    client = await start(server)

    resp = await client.get('/path')
    assert resp.status == 401
    assert await resp.json() == {'Code': 401, 'Message': 'Unauthorized'}


@pytest.mark.asyncio
async def test_raised_error(server, start):
    def handle(request):
        raise validation_error("%s is not a valid name", "bob!")

    server.api.post('/path', handle)
    client = await start(server)

    resp = await client.post('/path')
    assert resp.status == 400
    assert await resp.json() == {'Error': {'Code': 400, 'Message': 'bob! is not a valid name'}}


@pytest.mark.asyncio
async def test_returned_error(server, start):
    server.api.get('/path', lambda request: APIResponse(error=Error.forbidden()))
    client = await start(server)

    resp = await client.get('/path')
    assert resp.status == 403
    assert await resp.json() == {'Error': {'Code': 403, 'Message': 'Forbidden'}}


@pytest.mark.asyncio
async def test_headers_and_cookies(server, start):
    def handle(request):
        return APIResponse(
            data={'ok': True},
            headers={'X-Custom': 'value'},
            cookies=[Cookie('session', 'abc', httponly=True)],
        )

    server.api.get('/path', handle)
    client = await start(server)

    resp = await client.get('/path')
    assert resp.status == 200
    assert resp.headers['X-Custom'] == 'value'
    assert resp.cookies['session'].value == 'abc'
    assert await resp.json() == {'Data': {'ok': True}}


@pytest.mark.asyncio
async def test_fault_is_contained(server, start, caplog):
    def handle(request):
        raise RuntimeError("secret database password")

    server.api.get('/boom', handle)
    server.api.get('/ok', lambda request: True)
    client = await start(server)

    with caplog.at_level(logging.ERROR, logger='webstack'):
        resp = await client.get('/boom')
        body = await resp.text()

    assert resp.status == 500
    assert 'secret database password' not in body
    assert await resp.json() == {'Error': {'Code': 500, 'Message': 'Server Error'}}
    assert 'secret database password' in caplog.text

    resp = await client.get('/ok')
    assert resp.status == 200


@pytest.mark.asyncio
async def test_not_found_and_method_not_allowed(server, start):
    server.api.post('/path', lambda request: True)
    client = await start(server)

    resp = await client.get('/nothing')
    assert resp.status == 404
    assert await resp.json() == {'Code': 404, 'Message': 'Not Found'}

    resp = await client.get('/path')
    assert resp.status == 405
    assert await resp.json() == {'Code': 405, 'Message': 'Method Not Allowed'}


@pytest.mark.asyncio
async def test_decode_into(server, start):
    async def handle(request):
        toggle = await request.decode(Toggle)
        return not toggle.Enabled

    server.api.post('/toggle', handle)
    client = await start(server)

    resp = await client.post('/toggle', json={'Enabled': True})
    assert resp.status == 200
    assert await resp.json() == {'Data': False}


@pytest.mark.asyncio
@pytest.mark.parametrize('payload', [b'{not json', b'[1, 2]', b'{"Unknown": 1}'])
async def test_decode_rejects_bad_input(server, start, payload):
    async def handle(request):
        return await request.decode(Toggle)

    server.api.post('/toggle', handle)
    client = await start(server)

    resp = await client.post('/toggle', data=payload, headers={'Content-Type': 'application/json'})
    assert resp.status == 400
    assert await resp.json() == {'Error': {'Code': 400, 'Message': 'Bad Request'}}


@pytest.mark.asyncio
async def test_path_parameters(server, start):
    server.api.get('/users/{id}/posts/{post}', lambda request: request.parameters)
    client = await start(server)

    resp = await client.get('/users/42/posts/hello')
    assert await resp.json() == {'Data': {'id': '42', 'post': 'hello'}}


@pytest.mark.asyncio
async def test_large_body(server, start):
    called = []

    def handle(request):
        called.append(request)
        return True

    server.api.post('/path', handle, HandleOptions(max_body_length=16))
    client = await start(server)

    resp = await client.post('/path', json={'payload': 'x' * 100})
    assert resp.status == 413
    assert await resp.json() == {'Code': 413, 'Message': 'Request Entity Too Large'}
    assert called == []


@pytest.mark.asyncio
async def test_async_pre_handle(server, start):
    async def pre_handle(request):
        if 'X-Block' in request.headers:
            return web.json_response(Error.forbidden().to_dict(), status=403)
        return None

    server.api.get('/path', lambda request: True, HandleOptions(pre_handle=pre_handle))
    client = await start(server)

    resp = await client.get('/path', headers={'X-Block': '1'})
    assert resp.status == 403
    assert await resp.json() == {'Code': 403, 'Message': 'Forbidden'}

    resp = await client.get('/path')
    assert resp.status == 200


@pytest.mark.asyncio
async def test_dataclass_payload(server, start):
    server.api.get('/path', lambda request: Toggle(Enabled=True))
    client = await start(server)

    resp = await client.get('/path')
    assert await resp.json() == {'Data': {'Enabled': True}}


@pytest.mark.asyncio
async def test_rate_limited(start):
    server = Server(options=ServerOptions(max_requests_per_second=1))
    server.api.get('/path', lambda request: True)
    client = await start(server)

    assert (await client.get('/path')).status == 200
    resp = await client.get('/path')
    assert resp.status == 429
    assert await resp.json() == {'Code': 429, 'Message': 'Too Many Requests'}
