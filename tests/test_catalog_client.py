from datetime import datetime, timezone

import pytest
import requests

from http_fakes import DummyResp
from studymatic.api import client as client_mod
from studymatic.api.catalog import RemoteCatalogClient
from studymatic.api.session import CatalogSession
from studymatic.errors import CatalogUnavailable, NotFound, TransportError
from studymatic.models import Study

STUDY_JSON = {"id": "NSD0001", "label": "Survey 2019", "timestamp": "2019-03-01T12:00:05Z"}


@pytest.fixture
def catalog():
    return RemoteCatalogClient(CatalogSession(base_url="https://cat.example/api", token="tok"))


@pytest.fixture
def route(monkeypatch):
    """Map request URLs to canned responses and record every call."""
    routes = {}
    calls = []

    def fake_get(url, headers=None, params=None, timeout=None, stream=False):
        calls.append((url, params, stream))
        resp = routes[url]
        if isinstance(resp, Exception):
            raise resp
        return resp

    monkeypatch.setattr(client_mod.requests, 'get', fake_get)
    routes['calls'] = calls
    return routes


def _study():
    return Study.model_validate(STUDY_JSON)


def test_list_studies_accepts_bare_list(catalog, route):
    route['https://cat.example/api/studies'] = DummyResp(json_data=[STUDY_JSON])

    studies = catalog.list_studies()

    assert [s.id for s in studies] == ["NSD0001"]
    assert studies[0].timestamp == datetime(2019, 3, 1, 12, 0, 5, tzinfo=timezone.utc)
    assert route['calls'][0][1] == {'api_token': 'tok'}


def test_list_studies_accepts_wrapped_list(catalog, route):
    route['https://cat.example/api/studies'] = DummyResp(json_data={'studies': [STUDY_JSON]})
    assert [s.label for s in catalog.list_studies()] == ["Survey 2019"]


def test_list_studies_empty_catalog(catalog, route):
    route['https://cat.example/api/studies'] = DummyResp(json_data=[])
    assert catalog.list_studies() == []


@pytest.mark.parametrize(
    "resp",
    [
        DummyResp(status_code=503),
        DummyResp(),
        DummyResp(json_data={'unexpected': True}),
        DummyResp(json_data=[{'id': 'NSD0001', 'timestamp': 'not-a-date'}]),
        requests.exceptions.ConnectTimeout('timed out'),
    ],
)
def test_list_studies_failures_are_catalog_unavailable(catalog, route, resp):
    route['https://cat.example/api/studies'] = resp
    with pytest.raises(CatalogUnavailable):
        catalog.list_studies()


def test_get_study(catalog, route):
    route['https://cat.example/api/studies/NSD0001'] = DummyResp(json_data=STUDY_JSON)
    assert catalog.get_study("NSD0001").id == "NSD0001"


def test_get_study_quotes_identifier(catalog, route):
    route['https://cat.example/api/studies/a%2Fb'] = DummyResp(json_data=dict(STUDY_JSON, id="a/b"))
    assert catalog.get_study("a/b").id == "a/b"


def test_get_study_404_is_not_found(catalog, route):
    route['https://cat.example/api/studies/nope'] = DummyResp(status_code=404)
    with pytest.raises(NotFound, match="nope"):
        catalog.get_study("nope")


def test_get_study_server_error(catalog, route):
    route['https://cat.example/api/studies/NSD0001'] = DummyResp(status_code=500)
    with pytest.raises(CatalogUnavailable):
        catalog.get_study("NSD0001")


def test_fetch_variables(catalog, route):
    route['https://cat.example/api/studies/NSD0001/variables'] = DummyResp(
        json_data={
            'variables': [
                {'id': 'V1', 'label': 'Gender', 'name': 'q1',
                 'categories': [{'id': 'C1', 'label': 'Male', 'value': 1}]},
                {'id': 'V2', 'label': None, 'name': None, 'categories': None},
            ]
        }
    )

    variables = catalog.fetch_variables(_study())

    assert [v.id for v in variables] == ['V1', 'V2']
    assert variables[0].categories[0].value == '1'
    assert variables[1].categories == []


def test_fetch_variables_error_status(catalog, route):
    route['https://cat.example/api/studies/NSD0001/variables'] = DummyResp(status_code=502)
    with pytest.raises(TransportError, match="HTTP 502"):
        catalog.fetch_variables(_study())


def test_fetch_variables_malformed(catalog, route):
    route['https://cat.example/api/studies/NSD0001/variables'] = DummyResp(json_data=[{'label': 'no id'}])
    with pytest.raises(TransportError, match="Malformed"):
        catalog.fetch_variables(_study())


def test_fetch_data_streams_chunks(catalog, route):
    resp = DummyResp(chunks=[b'PK', b'', b'\x03\x04'])
    route['https://cat.example/api/studies/NSD0001/download'] = resp

    chunks = list(catalog.fetch_data(_study()))

    assert chunks == [b'PK', b'\x03\x04']
    assert resp.closed
    url, params, stream = route['calls'][0]
    assert params == {'format': 'csv', 'api_token': 'tok'}
    assert stream is True


def test_fetch_data_error_status(catalog, route):
    resp = DummyResp(status_code=500)
    route['https://cat.example/api/studies/NSD0001/download'] = resp

    with pytest.raises(TransportError, match="HTTP 500"):
        catalog.fetch_data(_study())
    assert resp.closed


def test_fetch_data_connection_failure(catalog, route):
    route['https://cat.example/api/studies/NSD0001/download'] = requests.exceptions.ConnectionError('reset')
    with pytest.raises(TransportError, match="reset"):
        catalog.fetch_data(_study())


def test_fetch_data_interrupted_mid_stream(catalog, route):
    resp = DummyResp(chunks=[b'PK'], fail_after=requests.exceptions.ChunkedEncodingError('broken'))
    route['https://cat.example/api/studies/NSD0001/download'] = resp

    chunks = catalog.fetch_data(_study())
    assert next(chunks) == b'PK'
    with pytest.raises(TransportError, match="interrupted"):
        next(chunks)
    assert resp.closed


def test_fetch_variables_repeated_id(catalog, route):
    route['https://cat.example/api/studies/NSD0001/variables'] = DummyResp(
        json_data=[{'id': 'V1', 'label': 'a'}, {'id': 'V1', 'label': 'b'}]
    )
    with pytest.raises(TransportError, match="'V1' twice"):
        catalog.fetch_variables(_study())
