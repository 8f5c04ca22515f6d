import threading
import time
from datetime import timedelta

import pytest
import requests

from conftest import FakeResponse, FakeSession, ISS_L1, ISS_L2, ISS_NAME, T0
from satpass.cache import ElementSetCache
from satpass.errors import FetchError
from satpass.tle import ElementSet, ElementSetFetcher, parse_element_set

ISS = ElementSet(ISS_NAME, ISS_L1, ISS_L2)


def _fetcher(session, cache=None, now=T0):
	cache = cache if cache is not None else ElementSetCache()
	return ElementSetFetcher(cache, session=session, clock=lambda: now), cache


def test_parse_element_set_trims_lines(iss_text):
	es = parse_element_set("  " + iss_text.replace("\r\n", "  \n"))
	assert es == ISS


def test_parse_element_set_needs_three_lines():
	with pytest.raises(ValueError):
		parse_element_set("No GP data found\n")


def test_fetch_miss_stores_in_cache(iss_text):
	session = FakeSession(iss_text)
	fetcher, cache = _fetcher(session)
	assert fetcher.fetch("25544") == ISS
	assert len(session.calls) == 1
	assert session.calls[0]["params"] == {"CATNR": "25544", "FORMAT": "TLE"}
	assert session.calls[0]["timeout"] == 10.0
	entry = cache.get("25544")
	assert entry.element_set == ISS
	assert entry.fetched_at == T0


def test_fresh_cache_hit_makes_no_network_call():
	session = FakeSession(error=AssertionError("network used"))
	cache = ElementSetCache()
	cache.put("25544", ISS, T0 - timedelta(hours=23, minutes=59))
	fetcher, _ = _fetcher(session, cache)
	assert fetcher.fetch("25544") == ISS
	assert session.calls == []


@pytest.mark.parametrize("age", [timedelta(hours=24), timedelta(hours=25)])
def test_stale_entry_fetches_exactly_once(iss_text, age):
	session = FakeSession(iss_text)
	cache = ElementSetCache()
	cache.put("25544", ElementSet("OLD", "1 old", "2 old"), T0 - age)
	fetcher, _ = _fetcher(session, cache)
	assert fetcher.fetch("25544") == ISS
	assert fetcher.fetch("25544") == ISS
	assert len(session.calls) == 1
	assert cache.get("25544").fetched_at == T0


def test_network_error_raises_fetch_error_and_caches_nothing():
	cause = requests.ConnectionError("unreachable")
	fetcher, cache = _fetcher(FakeSession(error=cause))
	with pytest.raises(FetchError) as excinfo:
		fetcher.fetch("25544")
	assert excinfo.value.__cause__ is cause
	assert len(cache) == 0


def test_http_error_raises_fetch_error():
	fetcher, cache = _fetcher(FakeSession("oops", status_code=503))
	with pytest.raises(FetchError):
		fetcher.fetch("25544")
	assert cache.get("25544") is None


def test_short_body_is_not_cached():
	fetcher, cache = _fetcher(FakeSession("No GP data found"))
	with pytest.raises(FetchError):
		fetcher.fetch("99999")
	assert cache.get("99999") is None


def test_concurrent_fetches_hit_network_once(iss_text):
	class SlowSession(FakeSession):
		def get(self, url, params=None, timeout=None):
			time.sleep(0.05)
			return super().get(url, params=params, timeout=timeout)

	session = SlowSession(iss_text)
	fetcher, _ = _fetcher(session)
	results = []
	threads = [threading.Thread(target=lambda: results.append(fetcher.fetch("25544"))) for _ in range(4)]
	for t in threads:
		t.start()
	for t in threads:
		t.join()
	assert results == [ISS] * 4
	assert len(session.calls) == 1


def test_fake_response_raises_for_status():
	with pytest.raises(requests.HTTPError):
		FakeResponse("", 500).raise_for_status()
