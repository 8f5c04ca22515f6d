import math
from datetime import datetime, timedelta, timezone

import pytest
import requests

from satpass.errors import PropagationSampleError

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

ISS_NAME = "ISS (ZARYA)"
ISS_L1 = "1 25544U 98067A   24001.50000000  .00016717  00000-0  10270-3 0  9005"
ISS_L2 = "2 25544  51.6416 247.4627 0006703 130.5360 325.0288 15.72125391 12345"


class StubPropagator:
	"""Replays elevations (degrees) keyed by sample time.

	A None elevation signals a failed sample. The "position" handed to the
	converter is (elevation_deg, raw_azimuth_rad, 0).
	"""

	def __init__(self, track, default_elevation=0.0, default_azimuth=0.0):
		self.track = track
		self.default_elevation = default_elevation
		self.default_azimuth = default_azimuth
		self.compiled = []

	def compile(self, element_set):
		self.compiled.append(element_set)
		return element_set

	def propagate(self, satellite, when):
		elevation, azimuth = self.track.get(when, (self.default_elevation, self.default_azimuth))
		if elevation is None:
			raise PropagationSampleError("decayed")
		return (elevation, azimuth, 0.0)


class StubConverter:
	def sidereal_time(self, when):
		return 0.0

	def inertial_to_earth_fixed(self, position, gmst):
		return position

	def earth_fixed_to_look_angles(self, observer, position):
		return math.radians(position[0]), position[1]


def make_track(start, elevations, azimuths=None):
	azimuths = azimuths or [0.0] * len(elevations)
	return {
		start + timedelta(minutes=i): (el, az)
		for i, (el, az) in enumerate(zip(elevations, azimuths))
	}


class FakeResponse:
	def __init__(self, text, status_code=200):
		self.text = text
		self.status_code = status_code

	def raise_for_status(self):
		if self.status_code >= 400:
			raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeSession:
	def __init__(self, text="", status_code=200, error=None):
		self.text = text
		self.status_code = status_code
		self.error = error
		self.calls = []

	def get(self, url, params=None, timeout=None):
		self.calls.append({"url": url, "params": params, "timeout": timeout})
		if self.error is not None:
			raise self.error
		return FakeResponse(self.text, self.status_code)


@pytest.fixture
def iss_text():
	return f"{ISS_NAME}\r\n{ISS_L1}\r\n{ISS_L2}\r\n"


@pytest.fixture
def converter():
	return StubConverter()
