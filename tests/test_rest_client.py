import pytest
import requests

from conftest import SHOP, FakeSession, make_response
from shopify_admin import ShopifyClient
from shopify_admin.exceptions import (
    ApiAuthError,
    ApiRateLimitError,
    ApiResponseError,
    ApiTransportError,
    MalformedHeaderError,
)
from shopify_admin.pagination import Pagination
from shopify_admin.rest import parse_call_limit, parse_retry_after

PRODUCTS = {'products': [{'title': 'Product 1'}]}


def _client(session, **kwargs):
    return ShopifyClient(SHOP, 'valid access token', session=session, **kwargs)


def test_get_returns_body_and_empty_pagination(sleeps):
    session = FakeSession(make_response(200, PRODUCTS))
    res = _client(session).get('products.json')
    assert res.body == PRODUCTS
    assert res.pagination == Pagination()
    assert sleeps == []


def test_request_shape():
    session = FakeSession(make_response(200, PRODUCTS))
    _client(session, api_version='2024-01').get('products.json', params={'limit': 5})
    sent = session.sent[0]
    assert sent.method == 'GET'
    assert sent.url == f'https://{SHOP}/admin/api/2024-01/products.json?limit=5'
    assert sent.headers['X-Shopify-Access-Token'] == 'valid access token'
    assert sent.headers['Content-Type'] == 'application/json'


def test_default_api_version():
    session = FakeSession(make_response(200, {}))
    _client(session).delete('products/1.json')
    assert session.sent[0].url == f'https://{SHOP}/admin/api/2021-10/products/1.json'
    assert session.sent[0].method == 'DELETE'


@pytest.mark.parametrize('method', ['post', 'put'])
def test_write_methods_send_json_body(method):
    body = {'product': {'title': 'New'}}
    session = FakeSession(make_response(201, body))
    res = getattr(_client(session), method)('products.json', body)
    assert session.sent[0].method == method.upper()
    assert session.sent_json(0) == body
    assert res.body == body


def test_empty_body_decodes_to_empty_dict():
    session = FakeSession(make_response(200, text=''))
    assert _client(session).delete('products/1.json').body == {}


def test_invalid_access_token_is_response_error():
    session = FakeSession(make_response(401, {'errors': '[API] Invalid API key or access token (unrecognized login or wrong password)'}))
    with pytest.raises(ApiResponseError) as exc:
        _client(session).get('products.json')
    err = exc.value
    assert isinstance(err, ApiAuthError)
    assert err.status == 401
    assert err.message == '[API] Invalid API key or access token (unrecognized login or wrong password)'
    assert len(session.sent) == 1


def test_field_errors_are_decoded():
    session = FakeSession(make_response(422, {'errors': {'title': ["can't be blank"], 'handle': 'taken'}}))
    with pytest.raises(ApiResponseError) as exc:
        _client(session).post('products.json', {'product': {}})
    assert exc.value.message is None
    assert exc.value.field_errors == {'title': ["can't be blank"], 'handle': ['taken']}
    assert 'title' in str(exc.value)


def test_list_errors_are_decoded():
    session = FakeSession(make_response(400, {'errors': ['bad one', 'bad two']}))
    with pytest.raises(ApiResponseError) as exc:
        _client(session).get('products.json')
    assert exc.value.field_errors == {'base': ['bad one', 'bad two']}


def test_non_json_error_body():
    session = FakeSession(make_response(503, text='<html>unavailable</html>'))
    with pytest.raises(ApiResponseError) as exc:
        _client(session).get('products.json')
    assert exc.value.status == 503
    assert exc.value.message == '<html>unavailable</html>'


def test_always_429_sleeps_once_then_fails(sleeps):
    session = FakeSession(make_response(429, {'errors': 'Exceeded 2 calls per second'}, headers={'Retry-After': '1'}))
    with pytest.raises(ApiRateLimitError):
        _client(session, max_retries=2).get('products.json')
    assert len(session.sent) == 2
    assert sleeps == [1.0]


def test_429_then_success(sleeps):
    session = FakeSession(
        make_response(429, headers={'Retry-After': '2.0'}),
        make_response(200, PRODUCTS),
    )
    res = _client(session).get('products.json')
    assert res.body == PRODUCTS
    assert sleeps == [2.0]
    assert len(session.sent) == 2
    assert session.sent[0].url == session.sent[1].url


def test_more_retries_allow_more_attempts(sleeps):
    session = FakeSession(make_response(429, headers={'Retry-After': '1'}))
    with pytest.raises(ApiRateLimitError):
        _client(session, max_retries=4).get('products.json')
    assert len(session.sent) == 4
    assert sleeps == [1.0, 1.0, 1.0]


def test_low_bucket_waits_without_resending(sleeps):
    session = FakeSession(make_response(200, PRODUCTS, headers={'X-Shopify-Shop-Api-Call-Limit': '39/40'}))
    client = _client(session)
    res = client.get('products.json')
    assert res.body == PRODUCTS
    assert len(session.sent) == 1
    assert sleeps == [2.0]
    assert client.available_calls == 1


def test_enough_headroom_does_not_wait(sleeps):
    session = FakeSession(make_response(200, PRODUCTS, headers={'X-Shopify-Shop-Api-Call-Limit': '10/40'}))
    client = _client(session)
    client.get('products.json')
    assert sleeps == []
    assert client.available_calls == 30


def test_transport_error_is_not_retried(sleeps):
    session = FakeSession(requests.ConnectionError('connection refused'))
    with pytest.raises(ApiTransportError):
        _client(session).get('products.json')
    assert len(session.sent) == 1
    assert sleeps == []


def test_pagination_from_link_header():
    link = ('<https://shop/admin/api/2021-10/products.json?limit=1&page_info=n1>; rel="next", '
            '<https://shop/admin/api/2021-10/products.json?limit=1&page_info=p1>; rel="previous"')
    session = FakeSession(make_response(200, PRODUCTS, headers={'Link': link}))
    res = _client(session).get('products.json', params={'limit': 1})
    assert res.pagination == Pagination(previous='p1', next='n1')
    assert res.headers['Link'] == link


def test_malformed_link_header_keeps_body():
    session = FakeSession(make_response(200, PRODUCTS, headers={'Link': 'nonsense'}))
    with pytest.raises(MalformedHeaderError) as exc:
        _client(session).get('products.json')
    assert exc.value.body == PRODUCTS


def test_iter_pages_follows_cursor():
    page1 = make_response(200, {'products': [{'id': 1}, {'id': 2}]},
                          headers={'Link': '<https://x/products.json?limit=2&page_info=c2>; rel="next"'})
    page2 = make_response(200, {'products': [{'id': 3}]},
                          headers={'Link': '<https://x/products.json?limit=2&page_info=c1>; rel="previous"'})
    session = FakeSession(page1, page2)
    items = list(_client(session).iter_pages('products.json', 'products', params={'limit': 2, 'status': 'active'}))
    assert [i['id'] for i in items] == [1, 2, 3]
    assert 'status=active' in session.sent[0].url
    assert session.sent[1].url.endswith('products.json?page_info=c2&limit=2')


def test_iter_pages_respects_max_pages():
    page = make_response(200, {'orders': [{'id': 1}]},
                         headers={'Link': '<https://x/orders.json?page_info=again>; rel="next"'})
    session = FakeSession(page)
    items = list(_client(session).iter_pages('orders.json', 'orders', max_pages=3))
    assert len(items) == 3
    assert len(session.sent) == 3


@pytest.mark.parametrize('value, expected', [
    ('39/40', 1), ('0/40', 40), ('', None), (None, None), ('40', None), ('a/b', None),
])
def test_parse_call_limit(value, expected):
    assert parse_call_limit(value) == expected


@pytest.mark.parametrize('value, expected', [
    ('1', 1.0), ('2.0', 2.0), (None, 2.0), ('soon', 2.0), ('-3', 2.0),
    ('inf', 2.0), ('nan', 2.0), ('1e9', 60.0),
])
def test_parse_retry_after(value, expected):
    assert parse_retry_after(value) == expected


def test_infinite_retry_after_uses_default_wait(sleeps):
    session = FakeSession(
        make_response(429, headers={'Retry-After': 'inf'}),
        make_response(200, PRODUCTS),
    )
    assert _client(session).get('products.json').body == PRODUCTS
    assert sleeps == [2.0]
