"""Tests for the outbound oracle client, using httpx.MockTransport."""

import json

import httpx
import pytest

from medregistry.services.oracle import (
    OracleClient,
    OracleError,
    build_job_spec,
    get_oracle_client,
    hash_pin,
    reset_oracle_client,
)


def _client(handler, api_token=""):
    return OracleClient(
        "https://oracle.example.com/",
        "job-7",
        api_token=api_token,
        transport=httpx.MockTransport(handler),
    )


def _job():
    return build_job_spec("req-1", "cust-42", hash_pin("1234"), "https://registry/cb")


def test_hash_pin_is_sha256_hex():
    digest = hash_pin("1234")
    assert len(digest) == 64
    assert digest == "03ac674216f3e15c761ee1a5e255f067953623c8b388b4459e13f978d7c846f4"


def test_submit_check_posts_job():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"data": {"id": "run-99"}})

    client = _client(handler, api_token="secret")
    assert client.submit_check(_job()) == "run-99"
    assert seen["url"] == "https://oracle.example.com/v2/specs/job-7/runs"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["path"] == "result"
    assert seen["body"]["customerId"] == "cust-42"
    client.close()


def test_no_auth_header_without_token():
    def handler(request):
        assert "Authorization" not in request.headers
        return httpx.Response(200, json={"data": {"id": "run-1"}})

    assert _client(handler).submit_check(_job()) == "run-1"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"data": {}}),
    ],
)
def test_bad_acknowledgements_raise(response):
    client = _client(lambda request: response)
    with pytest.raises(OracleError):
        client.submit_check(_job())


def test_transport_errors_raise():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(OracleError, match="unreachable"):
        _client(handler).submit_check(_job())


def test_reset_closes_and_replaces_singleton():
    first = get_oracle_client()
    assert get_oracle_client() is first

    reset_oracle_client()
    assert first._client.is_closed

    second = get_oracle_client()
    assert second is not first
    reset_oracle_client()
