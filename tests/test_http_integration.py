"""
End-to-end test against a local aiohttp server standing in for a parser API
and a video CDN.
"""

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from douyin_pipeline.processor import STATUS_OK, STATUS_PROVIDERS_FAILED, DouyinPipeline
from douyin_pipeline.providers import BaseProvider
from tests.conftest import FakeFfmpeg

SHARE_TEXT = "https://v.douyin.com/abcDEF1/"


def _make_app(seen):
    async def broken_api(request):
        return web.Response(status=500, text="internal error")

    async def form_api(request):
        form = await request.post()
        seen['form_url'] = form.get('url')
        seen['user_agent'] = request.headers.get('User-Agent')
        video_url = str(request.url.with_path('/cdn/x.mp4').with_query(None))
        return web.json_response({'code': 1, 'msg': 'ok', 'data': {'play': video_url, 'title': 'T'}})

    async def video(request):
        return web.Response(body=b'\x00\x00\x00\x18ftypmp42', content_type='video/mp4')

    app = web.Application()
    app.router.add_get('/broken/', broken_api)
    app.router.add_post('/form/', form_api)
    app.router.add_get('/cdn/x.mp4', video)
    return app


def _provider(name, endpoint, method='GET', success_code=200, key='url'):
    class LocalProvider(BaseProvider):
        PROVIDER_NAME = name.upper()
        ENDPOINT = endpoint
        METHOD = method
        SUCCESS_CODE = success_code

        def parse_result(self, data):
            return data.get(key)

    return LocalProvider(name)


@pytest.mark.asyncio
async def test_fallback_download_and_cache(settings):
    seen = {}
    async with test_utils.TestServer(_make_app(seen)) as server:
        providers = [
            _provider('broken', str(server.make_url('/broken/'))),
            _provider('form', str(server.make_url('/form/')), method='POST', success_code=1, key='play'),
        ]
        douyin_pipeline = DouyinPipeline.from_settings(settings, providers=providers, tool=FakeFfmpeg())

        async with aiohttp.ClientSession() as session:
            outcome = await douyin_pipeline.run(session, SHARE_TEXT)

    assert outcome.status == STATUS_OK
    assert outcome.provider_name == 'form'
    assert outcome.title == 'T'
    assert seen['form_url'] == SHARE_TEXT
    assert seen['user_agent'] == settings.user_agent
    assert outcome.items[0].path == settings.cache_dir / 'abcDEF1.mp4'
    assert outcome.items[0].path.read_bytes().endswith(b'ftypmp42')


@pytest.mark.asyncio
async def test_every_provider_failing(settings):
    async with test_utils.TestServer(_make_app({})) as server:
        providers = [_provider('broken', str(server.make_url('/broken/')))]
        douyin_pipeline = DouyinPipeline.from_settings(settings, providers=providers, tool=FakeFfmpeg())

        async with aiohttp.ClientSession() as session:
            outcome = await douyin_pipeline.run(session, SHARE_TEXT)

    assert outcome.status == STATUS_PROVIDERS_FAILED
