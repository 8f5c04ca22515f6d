from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .cache import ElementSetCache
from .config import Config, validate_config
from .errors import FetchError, InvalidCoordinates, MissingParameter, PropagationInitError
from .predict import Observer, Pass, detect_passes
from .propagation import FrameConverter, Propagator, Sgp4Propagator, SkyfieldFrameConverter
from .tle import ElementSetFetcher
from .utils import as_utc, utc_now

logger = logging.getLogger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_REQUIRED = ("satelliteId", "lat", "lng")


def _is_blank(value: Any) -> bool:
	return value is None or (isinstance(value, str) and not value.strip())


def _round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def observer_from_degrees(latitude: Any, longitude: Any, height_m: float = 0.0) -> Observer:
	"""Range-check geographic degrees and convert them to an Observer."""
	try:
		latitude = float(latitude)
		longitude = float(longitude)
	except (TypeError, ValueError) as e:
		raise InvalidCoordinates("Invalid coordinates") from e
	if not (math.isfinite(latitude) and math.isfinite(longitude)):
		raise InvalidCoordinates("Invalid coordinates")
	if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
		raise InvalidCoordinates("Invalid coordinates")
	wrapped_lng = ((longitude + 180) % 360) - 180
	return Observer(
		latitude_rad=math.radians(latitude),
		longitude_rad=math.radians(wrapped_lng),
		height_m=height_m,
	)


def parse_location(body: Mapping[str, Any]) -> Observer:
	"""Validate the request body and build the observer it describes."""
	if any(_is_blank(body.get(key)) for key in _REQUIRED):
		raise MissingParameter("Missing required parameters")
	return observer_from_degrees(body["lat"], body["lng"])


def format_pass(p: Pass) -> Dict[str, Any]:
	return {
		"startTime": as_utc(p.start_time).strftime(TIME_FORMAT),
		"endTime": as_utc(p.end_time).strftime(TIME_FORMAT),
		"maxElevation": _round_half_up(p.max_elevation),
		"azimuthStart": _round_half_up(p.start_azimuth) % 360,
		"azimuthEnd": _round_half_up(p.end_azimuth) % 360,
		"duration": _round_half_up(p.duration_seconds / 60.0),
	}


def create_app(
	config: Optional[Config] = None,
	fetcher: Optional[ElementSetFetcher] = None,
	propagator: Optional[Propagator] = None,
	converter: Optional[FrameConverter] = None,
	clock: Callable[[], datetime] = utc_now,
) -> Flask:
	"""
	Build the pass prediction app.

	Collaborators default to the live ones built from `config`; tests pass
	stubs instead. The element-set cache lives as long as the fetcher does,
	i.e. for the lifetime of the app.
	"""
	config = validate_config(config or Config())
	if fetcher is None:
		cache = ElementSetCache(ttl=timedelta(hours=config.cache.ttl_hours))
		fetcher = ElementSetFetcher(
			cache,
			url=config.source.url,
			timeout_sec=config.source.timeout_sec,
			clock=clock,
		)
	propagator = propagator or Sgp4Propagator()
	converter = converter or SkyfieldFrameConverter()
	window = timedelta(hours=config.prediction.window_hours)

	app = Flask(__name__)
	CORS(app)
	app.extensions["satpass"] = {
		"config": config,
		"fetcher": fetcher,
		"propagator": propagator,
		"converter": converter,
	}

	@app.post("/api/passes")
	def passes_prediction():
		body = request.get_json(silent=True)
		if not isinstance(body, dict):
			body = {}
		try:
			observer = parse_location(body)
		except (MissingParameter, InvalidCoordinates) as e:
			return jsonify({"error": str(e)}), 400

		satellite_id = str(body["satelliteId"]).strip()
		try:
			element_set = fetcher.fetch(satellite_id)
			try:
				satellite = propagator.compile(element_set)
			except PropagationInitError as e:
				logger.warning("Bad element set for %s: %s", satellite_id, e)
				return jsonify({"error": "Error parsing TLE data"}), 400

			start = clock()
			found = detect_passes(
				satellite,
				observer,
				start,
				start + window,
				propagator,
				converter,
				open_pass_policy=config.prediction.open_pass_policy,
			)
		except FetchError as e:
			logger.error("Element set unavailable for %s: %s", satellite_id, e)
			return jsonify({"error": "Failed to calculate passes", "details": str(e)}), 500
		except Exception as e:
			logger.exception("Pass calculation failed for %s", satellite_id)
			return jsonify({"error": "Failed to calculate passes", "details": str(e)}), 500

		logger.info("Found %d passes for %s", len(found), satellite_id)
		return jsonify([format_pass(p) for p in found])

	@app.errorhandler(Exception)
	def handle_unexpected(e):
		if isinstance(e, HTTPException):
			return e
		logger.exception("Unhandled error")
		return jsonify({"error": "Something went wrong!"}), 500

	return app
