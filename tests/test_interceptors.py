"""
Tests for the request and response interceptors.

Covers bearer token injection, the login exemption, envelope encoding and
decoding, and the guard against encoding a replayed body twice.
"""

import asyncio

import pytest

from authshared.exceptions import AuthExpiredError, DecodeError, RefreshFailureError
from authshared.models import PipelineSettings, RequestConfig, Response
from authclient.auth.token_storage import SessionTokenStore
from authclient.codec import EncryptionCodec
from authclient.interceptors import RequestInterceptor, ResponseInterceptor

from conftest import respond, wait_until

codec = EncryptionCodec()


@pytest.fixture
def encrypted_settings():
    return PipelineSettings(encryption_enabled=True)


class TestRequestInterceptor:
    """Outgoing request mutation."""

    def test_adds_bearer_token(self, token_store, settings):
        interceptor = RequestInterceptor(token_store, codec, settings)

        config = interceptor(RequestConfig('GET', '/file-operation'))

        assert config.headers['Authorization'] == 'Bearer T1'

    def test_token_is_read_at_call_time(self, token_store, settings):
        interceptor = RequestInterceptor(token_store, codec, settings)

        first = interceptor(RequestConfig('GET', '/a'))
        token_store.set_token("T9")
        second = interceptor(RequestConfig('GET', '/b'))

        assert first.headers['Authorization'] == 'Bearer T1'
        assert second.headers['Authorization'] == 'Bearer T9'

    def test_login_request_is_untouched(self, token_store, encrypted_settings):
        interceptor = RequestInterceptor(token_store, codec, encrypted_settings)

        config = interceptor(RequestConfig('POST', 'http://api.test/user/login', data={'username': 'test_user'}))

        assert 'Authorization' not in config.headers
        assert config.data == {'username': 'test_user'}

    def test_login_matched_by_suffix_only(self, token_store, settings):
        interceptor = RequestInterceptor(token_store, codec, settings)

        config = interceptor(RequestConfig('GET', '/login/history'))

        assert config.headers['Authorization'] == 'Bearer T1'

    def test_no_header_without_token(self, settings):
        interceptor = RequestInterceptor(SessionTokenStore(), codec, settings)

        config = interceptor(RequestConfig('GET', '/a'))

        assert 'Authorization' not in config.headers

    def test_body_left_alone_when_encryption_disabled(self, token_store, settings):
        interceptor = RequestInterceptor(token_store, codec, settings)

        config = interceptor(RequestConfig('POST', '/a', data={'count': 1}))

        assert config.data == {'count': 1}

    def test_body_wrapped_when_encryption_enabled(self, token_store, encrypted_settings):
        interceptor = RequestInterceptor(token_store, codec, encrypted_settings)

        config = interceptor(RequestConfig('POST', '/a', data={'count': 1}))

        assert set(config.data) == {'data'}
        assert codec.decode(config.data['data']) == {'count': 1}

    def test_empty_body_not_wrapped(self, token_store, encrypted_settings):
        interceptor = RequestInterceptor(token_store, codec, encrypted_settings)

        config = interceptor(RequestConfig('GET', '/a'))

        assert config.data is None

    def test_retry_marked_body_not_encoded_again(self, token_store, encrypted_settings):
        interceptor = RequestInterceptor(token_store, codec, encrypted_settings)
        config = interceptor(RequestConfig('POST', '/a', data={'count': 1}))
        envelope = dict(config.data)

        config.retrying_after_token_refresh = True
        token_store.set_token("T2")
        config = interceptor(config)

        assert config.data == envelope
        assert config.headers['Authorization'] == 'Bearer T2'


class TestResponseInterceptor:
    """Inbound response decoding."""

    def test_decodes_envelope(self, encrypted_settings):
        interceptor = ResponseInterceptor(codec, encrypted_settings)
        config = RequestConfig('GET', '/status')
        response = Response(status=200, data={'data': codec.encode([{'id': 1}])}, config=config)

        result = interceptor(response)

        assert result is response
        assert result.data == {'data': [{'id': 1}]}

    def test_passthrough_when_disabled(self, settings):
        interceptor = ResponseInterceptor(codec, settings)
        encoded = codec.encode({'id': 1})
        response = Response(status=200, data={'data': encoded}, config=RequestConfig('GET', '/a'))

        assert interceptor(response).data == {'data': encoded}

    def test_login_response_not_decoded(self, encrypted_settings):
        interceptor = ResponseInterceptor(codec, encrypted_settings)
        body = {'data': {'token': 'T1', 'name': 'Test User'}}
        response = Response(status=200, data=body, config=RequestConfig('POST', '/user/login'))

        assert interceptor(response).data == {'data': {'token': 'T1', 'name': 'Test User'}}

    def test_body_without_envelope_is_returned_unchanged(self, encrypted_settings):
        interceptor = ResponseInterceptor(codec, encrypted_settings)
        response = Response(status=204, data=None, config=RequestConfig('DELETE', '/a'))

        assert interceptor(response).data is None

    def test_malformed_envelope_raises(self, encrypted_settings):
        interceptor = ResponseInterceptor(codec, encrypted_settings)
        response = Response(status=200, data={'data': '%%% not encoded %%%'}, config=RequestConfig('GET', '/a'))

        with pytest.raises(DecodeError):
            interceptor(response)


class TestPipelineEncoding:
    """Envelope handling through the full client."""

    @pytest.mark.asyncio
    async def test_encoded_round_trip(self, make_client, encrypted_settings):
        def handler(config):
            payload = codec.decode(config.data['data'])
            return respond(config, 200, {'data': codec.encode({'echo': payload})})

        client, transport = make_client(handler, settings=encrypted_settings)

        response = await client.post("/file-operation/file-data", data={'id': 'x', 'count': 1})

        assert response.data == {'data': {'echo': {'id': 'x', 'count': 1}}}
        assert transport.sent[0].data == {'data': codec.encode({'id': 'x', 'count': 1})}

    @pytest.mark.asyncio
    async def test_decode_error_surfaces_to_caller(self, make_client, encrypted_settings):
        client, _ = make_client(lambda config: respond(config, 200, {'data': 'garbage!'}), settings=encrypted_settings)

        with pytest.raises(DecodeError):
            await client.get("/file-operation/raw")

    @pytest.mark.asyncio
    async def test_replayed_body_is_encoded_once(self, make_client, token_store, encrypted_settings):
        refresh_gate = asyncio.Event()
        refresh_gate.set()

        async def handler(config):
            if config.url == "/user/refresh-token":
                await refresh_gate.wait()
                return respond(config, 200, {'data': codec.encode({'token': 'T2'})})
            if config.headers.get('Authorization') != 'Bearer T2':
                return respond(config, 401)
            return respond(config, 200, {'data': codec.encode(codec.decode(config.data['data']))})

        client, transport = make_client(handler, settings=encrypted_settings)

        response = await client.post("/file-operation/raw-data", data={'count': 7})

        attempts = transport.sent_to("/file-operation/raw-data")
        assert len(attempts) == 2
        assert attempts[0].data == attempts[1].data
        assert attempts[1].authorization == 'Bearer T2'
        assert response.data == {'data': {'count': 7}}
        assert token_store.get_token() == "T2"

    @pytest.mark.asyncio
    async def test_login_bypasses_header_envelope_and_refresh(self, make_client, encrypted_settings):
        client, transport = make_client(lambda config: respond(config, 401), settings=encrypted_settings)

        with pytest.raises(AuthExpiredError):
            await client.login({'username': 'test_user'})

        assert len(transport.sent) == 1
        sent = transport.sent[0]
        assert sent.authorization is None
        assert sent.data == {'username': 'test_user'}

    @pytest.mark.asyncio
    async def test_refresh_response_envelope_is_decoded(self, make_client, encrypted_settings):
        client, transport = make_client(
            lambda config: respond(config, 200, {'data': codec.encode({'token': 'T2'})}),
            settings=encrypted_settings
        )

        token = await client.refresh_token()

        assert token == 'T2'
        refresh_call = transport.sent_to("/user/refresh-token")[0]
        assert refresh_call.authorization == 'Bearer T1'
        assert refresh_call.data is None

    @pytest.mark.asyncio
    async def test_undecodable_refresh_response_fails_refresh(self, make_client, encrypted_settings):
        client, _ = make_client(
            lambda config: respond(config, 200, {'data': 'garbage!'}),
            settings=encrypted_settings
        )

        with pytest.raises(RefreshFailureError) as exc_info:
            await client.refresh_token()

        assert isinstance(exc_info.value.cause, DecodeError)

    @pytest.mark.asyncio
    async def test_decode_error_on_queued_replay_reaches_its_caller(
        self, make_client, token_store, encrypted_settings
    ):
        refresh_gate = asyncio.Event()

        async def handler(config):
            if config.url == "/user/refresh-token":
                await refresh_gate.wait()
                return respond(config, 200, {'data': codec.encode({'token': 'T2'})})
            if config.headers.get('Authorization') != 'Bearer T2':
                return respond(config, 401)
            if config.url == "/b":
                return respond(config, 200, {'data': 'garbage!'})
            return respond(config, 200, {'data': codec.encode({'url': config.url})})

        client, transport = make_client(handler, settings=encrypted_settings)
        coordinator = client.refresh_coordinator

        task_a = asyncio.create_task(client.get("/a"))
        await wait_until(lambda: coordinator.is_refreshing)
        task_b = asyncio.create_task(client.get("/b"))
        await wait_until(lambda: coordinator.pending_count == 1)
        refresh_gate.set()

        response_a, error_b = await asyncio.gather(task_a, task_b, return_exceptions=True)

        assert response_a.data == {'data': {'url': '/a'}}
        assert isinstance(error_b, DecodeError)
        assert len(transport.sent_to("/b")) == 2
        assert token_store.get_token() == "T2"
        assert coordinator.pending_count == 0
