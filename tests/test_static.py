import os
import threading

import pytest

from webstack.web import static
from webstack.web.static import resolve_static_path


@pytest.fixture
def site(tmp_path):
    root = tmp_path / 'public'
    root.mkdir()
    (root / 'hello.txt').write_bytes(b'0123456789abcdef')
    (root / 'docs').mkdir()
    (root / 'docs' / 'index.html').write_text('<h1>docs</h1>')
    (tmp_path / 'secret.txt').write_text('do not serve')
    return root


def test_resolve_inside_root(site):
    root = site.resolve()
    assert resolve_static_path(root, 'hello.txt') == root / 'hello.txt'
    assert resolve_static_path(root, '/hello.txt') == root / 'hello.txt'
    assert resolve_static_path(root, 'docs') == root / 'docs' / 'index.html'


@pytest.mark.parametrize('relative', ['../secret.txt', 'docs/../../secret.txt', 'missing.txt', 'nul\x00.txt', ''])
def test_resolve_rejects(site, relative):
    assert resolve_static_path(site.resolve(), relative) is None


def test_resolve_rejects_symlink_escape(site, tmp_path):
    try:
        os.symlink(tmp_path / 'secret.txt', site / 'link.txt')
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")
    assert resolve_static_path(site.resolve(), 'link.txt') is None


@pytest.fixture
def linked_index(site, tmp_path):
    """A directory whose index.html is a symlink to a file outside the root."""
    (site / 'escape').mkdir()
    try:
        os.symlink(tmp_path / 'secret.txt', site / 'escape' / 'index.html')
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")
    return site


def test_resolve_rejects_index_symlink_escape(linked_index):
    root = linked_index.resolve()
    assert resolve_static_path(root, 'escape') is None
    assert resolve_static_path(root, 'escape/') is None
    assert resolve_static_path(root, 'escape/index.html') is None


def test_resolve_allows_index_symlink_inside_root(site):
    (site / 'alias').mkdir()
    try:
        os.symlink(site / 'hello.txt', site / 'alias' / 'index.html')
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")
    root = site.resolve()
    assert resolve_static_path(root, 'alias') == root / 'hello.txt'


@pytest.mark.asyncio
async def test_index_symlink_escape_is_not_found(server, start, linked_index):
    server.http.static('/static/', str(linked_index))
    client = await start(server)

    resp = await client.get('/static/escape/')
    assert resp.status == 404
    assert 'do not serve' not in await resp.text()


@pytest.mark.asyncio
async def test_path_resolution_runs_off_the_event_loop(server, start, site, monkeypatch):
    threads = []

    def recording_resolve(root, relative):
        threads.append(threading.current_thread())
        return resolve_static_path(root, relative)

    monkeypatch.setattr(static, 'resolve_static_path', recording_resolve)
    server.http.static('/static/', str(site))
    client = await start(server)

    resp = await client.get('/static/hello.txt')
    assert resp.status == 200
    assert len(threads) == 1
    assert threads[0] is not threading.main_thread()


@pytest.mark.asyncio
async def test_serve_file(server, start, site):
    server.http.static('/static', str(site))
    client = await start(server)

    resp = await client.get('/static/hello.txt')
    assert resp.status == 200
    assert resp.headers['Content-Type'] == 'text/plain'
    assert resp.headers['Accept-Ranges'] == 'bytes'
    assert 'Last-Modified' in resp.headers
    assert await resp.read() == b'0123456789abcdef'


@pytest.mark.asyncio
async def test_serve_directory_index(server, start, site):
    server.http.static('static/', str(site))
    client = await start(server)

    resp = await client.get('/static/docs/')
    assert resp.status == 200
    assert await resp.text() == '<h1>docs</h1>'


@pytest.mark.asyncio
async def test_range_on_static_file(server, start, site):
    server.http.static('/static/', str(site))
    client = await start(server)

    resp = await client.get('/static/hello.txt', headers={'Range': 'bytes=4-7'})
    assert resp.status == 206
    assert resp.headers['Content-Range'] == 'bytes 4-7/16'
    assert await resp.read() == b'4567'


@pytest.mark.asyncio
async def test_missing_file(server, start, site):
    server.http.static('/static/', str(site))
    client = await start(server)

    resp = await client.get('/static/nothing.txt')
    assert resp.status == 404
    assert await resp.json() == {'Code': 404, 'Message': 'Not Found'}


@pytest.mark.asyncio
async def test_traversal_is_not_found(server, start, site):
    server.http.static('/static/', str(site))
    client = await start(server)

    resp = await client.get('/static/..%2fsecret.txt')
    assert resp.status == 404
    assert 'do not serve' not in await resp.text()
