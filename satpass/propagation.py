"""
Propagation and frame-conversion adapters used by the pass detector.

The detector only sees the two small interfaces below, so tests can drive it
with deterministic stubs. The default implementations wrap the sgp4 library
(TEME positions in km) and skyfield (sidereal time, WGS84 observer position).
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, Tuple

import numpy as np
from sgp4.api import SGP4_ERRORS, Satrec, jday
from skyfield.api import load, wgs84

from .errors import PropagationInitError, PropagationSampleError
from .tle import ElementSet
from .utils import as_utc

if TYPE_CHECKING:
	from .predict import Observer

logger = logging.getLogger(__name__)

Vector = Tuple[float, float, float]


class Propagator(Protocol):
	def compile(self, element_set: ElementSet) -> Any:
		...

	def propagate(self, satellite: Any, when: datetime) -> Vector:
		...


class FrameConverter(Protocol):
	def sidereal_time(self, when: datetime) -> float:
		...

	def inertial_to_earth_fixed(self, position: Vector, gmst: float) -> Vector:
		...

	def earth_fixed_to_look_angles(self, observer: "Observer", position: Vector) -> Tuple[float, float]:
		...


class Sgp4Propagator:
	"""SGP4 propagation of two-line element sets."""

	def compile(self, element_set: ElementSet) -> Satrec:
		l1, l2 = element_set.line1, element_set.line2
		if not (l1.startswith("1 ") and l2.startswith("2 ")):
			raise PropagationInitError(f"Malformed element set for {element_set.name!r}")
		try:
			satrec = Satrec.twoline2rv(l1, l2)
		except (ValueError, IndexError) as e:
			raise PropagationInitError(f"Malformed element set for {element_set.name!r}: {e}") from e
		if satrec.error:
			raise PropagationInitError(
				f"SGP4 init failed for {element_set.name!r}: "
				f"{SGP4_ERRORS.get(satrec.error, satrec.error)}"
			)
		return satrec

	def propagate(self, satellite: Satrec, when: datetime) -> Vector:
		when = as_utc(when)
		jd, fr = jday(
			when.year,
			when.month,
			when.day,
			when.hour,
			when.minute,
			when.second + when.microsecond / 1e6,
		)
		error, position, _ = satellite.sgp4(jd, fr)
		if error:
			raise PropagationSampleError(SGP4_ERRORS.get(error, f"SGP4 error {error}"))
		if not all(math.isfinite(c) for c in position):
			raise PropagationSampleError("SGP4 returned a non-finite position")
		return (float(position[0]), float(position[1]), float(position[2]))


class SkyfieldFrameConverter:
	"""TEME -> Earth-fixed -> topocentric conversion.

	Earth-fixed coordinates ignore polar motion; azimuth is measured clockwise
	from north and returned in radians.
	"""

	def __init__(self, timescale=None):
		self.ts = timescale or load.timescale()

	def sidereal_time(self, when: datetime) -> float:
		t = self.ts.from_datetime(as_utc(when))
		return float(t.gmst) * math.pi / 12.0

	def inertial_to_earth_fixed(self, position: Vector, gmst: float) -> Vector:
		c, s = math.cos(gmst), math.sin(gmst)
		x, y, z = position
		return (x * c + y * s, -x * s + y * c, z)

	def earth_fixed_to_look_angles(self, observer: "Observer", position: Vector) -> Tuple[float, float]:
		site = wgs84.latlon(
			math.degrees(observer.latitude_rad),
			math.degrees(observer.longitude_rad),
			elevation_m=observer.height_m,
		)
		lat, lon = observer.latitude_rad, observer.longitude_rad
		sin_lat, cos_lat = math.sin(lat), math.cos(lat)
		sin_lon, cos_lon = math.sin(lon), math.cos(lon)
		to_sez = np.array(
			[
				[sin_lat * cos_lon, sin_lat * sin_lon, -cos_lat],
				[-sin_lon, cos_lon, 0.0],
				[cos_lat * cos_lon, cos_lat * sin_lon, sin_lat],
			]
		)
		rng = np.asarray(position, dtype=float) - np.asarray(site.itrs_xyz.km, dtype=float)
		south, east, zenith = to_sez @ rng
		distance = float(np.linalg.norm(rng))
		if distance == 0.0:
			raise PropagationSampleError("Object coincides with observer")
		elevation = math.asin(float(zenith) / distance)
		azimuth = math.atan2(-float(east), float(south)) + math.pi
		return elevation, azimuth


def look_angles_at(
	converter: FrameConverter,
	observer: "Observer",
	position: Vector,
	when: datetime,
) -> Tuple[float, float]:
	"""Raw (elevation, azimuth) in radians for an inertial position."""
	earth_fixed = converter.inertial_to_earth_fixed(position, converter.sidereal_time(when))
	return converter.earth_fixed_to_look_angles(observer, earth_fixed)
