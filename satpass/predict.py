from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, List, Optional, Tuple

from .config import OPEN_PASS_POLICIES
from .errors import PropagationSampleError
from .propagation import FrameConverter, Propagator, look_angles_at

logger = logging.getLogger(__name__)

# Fixed by the algorithm; not inputs
VISIBILITY_THRESHOLD_DEG = 10.0
SAMPLE_STEP = timedelta(minutes=1)


@dataclass(frozen=True)
class Observer:
	latitude_rad: float
	longitude_rad: float
	height_m: float = 0.0


@dataclass(frozen=True)
class LookAngles:
	elevation_deg: float
	azimuth_deg: float


@dataclass(frozen=True)
class PendingPass:
	start_time: datetime
	start_azimuth: float
	max_elevation: float
	last_time: datetime
	last_azimuth: float


@dataclass(frozen=True)
class Pass:
	start_time: datetime
	end_time: datetime
	max_elevation: float
	start_azimuth: float
	end_azimuth: float
	duration_seconds: float


def normalize_azimuth(raw_rad: float) -> float:
	"""Map an azimuth in radians (any range) to degrees in [0, 360)."""
	wrapped = ((raw_rad + math.pi) % (2 * math.pi)) - math.pi
	azimuth = (math.degrees(wrapped) + 360.0) % 360.0
	# Float rounding can land exactly on 360
	return 0.0 if azimuth >= 360.0 else azimuth


def to_look_angles(elevation_rad: float, azimuth_rad: float) -> LookAngles:
	return LookAngles(
		elevation_deg=math.degrees(elevation_rad),
		azimuth_deg=normalize_azimuth(azimuth_rad),
	)


def _close(pending: PendingPass, end_time: datetime, end_azimuth: float) -> Pass:
	return Pass(
		start_time=pending.start_time,
		end_time=end_time,
		max_elevation=pending.max_elevation,
		start_azimuth=pending.start_azimuth,
		end_azimuth=end_azimuth,
		duration_seconds=(end_time - pending.start_time).total_seconds(),
	)


def advance(
	state: Optional[PendingPass],
	when: datetime,
	look: LookAngles,
) -> Tuple[Optional[PendingPass], Optional[Pass]]:
	"""
	Apply one sample to the pass state machine.

	`state` is None while idle, or the pass in progress. Returns the new state
	and the pass closed by this sample, if any.
	"""
	visible = look.elevation_deg > VISIBILITY_THRESHOLD_DEG
	if state is None:
		if not visible:
			return None, None
		opened = PendingPass(
			start_time=when,
			start_azimuth=look.azimuth_deg,
			max_elevation=look.elevation_deg,
			last_time=when,
			last_azimuth=look.azimuth_deg,
		)
		return opened, None
	if visible:
		updated = replace(
			state,
			max_elevation=max(state.max_elevation, look.elevation_deg),
			last_time=when,
			last_azimuth=look.azimuth_deg,
		)
		return updated, None
	return None, _close(state, when, look.azimuth_deg)


def flush(state: Optional[PendingPass]) -> Optional[Pass]:
	"""Close a pass still open at the window edge at its last visible sample."""
	if state is None:
		return None
	return _close(state, state.last_time, state.last_azimuth)


def detect_passes(
	satellite: Any,
	observer: Observer,
	start_time: datetime,
	end_time: datetime,
	propagator: Propagator,
	converter: FrameConverter,
	open_pass_policy: str = "discard",
) -> List[Pass]:
	"""
	Sample the sky track once a minute and segment it into passes above 10 deg.

	Rise and set times are the first and last sampled minutes at which the
	threshold test flips; there is no interpolation between samples, so passes
	shorter than a minute may be missed. Samples that cannot be propagated or
	converted are skipped without affecting a pass in progress. A pass still
	visible at `end_time` is dropped under the "discard" policy and closed at its
	last visible sample under "flush".
	"""
	if start_time > end_time:
		raise ValueError("start_time must not be after end_time")
	if open_pass_policy not in OPEN_PASS_POLICIES:
		raise ValueError(f"Unknown open pass policy: {open_pass_policy!r}")

	passes: List[Pass] = []
	state: Optional[PendingPass] = None
	skipped = 0
	t = start_time
	while t <= end_time:
		try:
			position = propagator.propagate(satellite, t)
			elevation, azimuth = look_angles_at(converter, observer, position, t)
		except PropagationSampleError as e:
			skipped += 1
			logger.debug("Skipping sample at %s: %s", t.isoformat(), e)
			t += SAMPLE_STEP
			continue
		state, closed = advance(state, t, to_look_angles(elevation, azimuth))
		if closed is not None:
			passes.append(closed)
		t += SAMPLE_STEP

	if state is not None:
		if open_pass_policy == "flush":
			passes.append(flush(state))
		else:
			logger.debug("Discarding pass still open at window end (started %s)", state.start_time.isoformat())
	if skipped:
		logger.info("Skipped %d samples that could not be propagated or converted", skipped)
	return passes
