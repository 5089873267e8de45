import json
from typing import Any, Dict, List, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict

import shopify_admin.base_client as base_client

SHOP = 'shop-name.myshopify.com'


def make_response(status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None,
                  text: Optional[str] = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    if text is not None:
        resp._content = text.encode('utf-8')
    elif body is not None:
        resp._content = json.dumps(body).encode('utf-8')
    else:
        resp._content = b''
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.headers.setdefault('Content-Type', 'application/json')
    resp.encoding = 'utf-8'
    resp.reason = 'OK' if status < 400 else 'Error'
    return resp


class FakeSession(requests.Session):
    """Replays scripted responses; the last one repeats once the script runs out."""

    def __init__(self, *responses):
        super().__init__()
        self.responses: List[Any] = list(responses)
        self.sent: List[requests.PreparedRequest] = []

    def send(self, request, **kwargs):
        self.sent.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        item.request = request
        item.url = request.url
        return item

    def sent_json(self, index: int = -1) -> Any:
        return json.loads(self.sent[index].body)


@pytest.fixture
def sleeps(monkeypatch):
    calls: List[float] = []
    monkeypatch.setattr(base_client.time, 'sleep', calls.append)
    return calls
