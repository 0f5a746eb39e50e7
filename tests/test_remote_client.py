"""
Tests for the REST client of the remote annotation service, run against
httpx.MockTransport.
"""

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pdf_highlights.errors import RemoteSyncError
from pdf_highlights.sync import RemoteAnnotationClient


def make_client(handler, token="secret"):
    return RemoteAnnotationClient("https://api.example.test/", auth_token=token,
                                  transport=httpx.MockTransport(handler))


def test_save_posts_payload_with_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"annotation": {"id": "srv-9", "page_number": 2}})

    annotation = asyncio.run(make_client(handler).save({"reference_id": "ref", "page_number": 2}))

    assert annotation["id"] == "srv-9"
    assert seen["path"] == "/saveAnnotation"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["reference_id"] == "ref"


def test_no_authorization_header_without_token():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={})

    asyncio.run(make_client(handler, token="").delete("srv-1"))
    assert seen["auth"] is None


def test_delete_sends_annotation_id():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True})

    asyncio.run(make_client(handler).delete("srv-3"))
    assert seen == {"path": "/deleteAnnotation", "body": {"annotationId": "srv-3"}}


def test_list_annotations():
    def handler(request):
        assert json.loads(request.content) == {"referenceId": "ref-1"}
        return httpx.Response(200, json={"annotations": [{"id": 1}, "junk", {"id": 2}]})

    annotations = asyncio.run(make_client(handler).list_annotations("ref-1"))
    assert [a["id"] for a in annotations] == [1, 2]


@pytest.mark.parametrize("response, message", [
    (httpx.Response(500, json={"message": "database down"}), "database down"),
    (httpx.Response(400, json={"error": "bad payload"}), "bad payload"),
    (httpx.Response(502, text="bad gateway"), "bad gateway"),
    (httpx.Response(404), "HTTP 404"),
])
def test_error_responses_raise_with_best_message(response, message):
    client = make_client(lambda request: response)
    with pytest.raises(RemoteSyncError) as excinfo:
        asyncio.run(client.delete("srv-1"))
    assert str(excinfo.value) == message
    assert excinfo.value.status_code == response.status_code


def test_save_without_annotation_in_response_fails():
    client = make_client(lambda request: httpx.Response(200, json={"success": True}))
    with pytest.raises(RemoteSyncError):
        asyncio.run(client.save({"reference_id": "ref"}))


def test_timeout_is_reported_as_sync_error():
    def handler(request):
        raise httpx.ConnectTimeout("too slow", request=request)

    with pytest.raises(RemoteSyncError, match="timed out"):
        asyncio.run(make_client(handler).delete("srv-1"))


def test_transport_failure_is_reported_as_sync_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RemoteSyncError, match="failed"):
        asyncio.run(make_client(handler).delete("srv-1"))
