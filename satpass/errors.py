from __future__ import annotations


class SatPassError(Exception):
	"""Base class for errors raised by satpass."""


class MissingParameter(SatPassError):
	pass


class InvalidCoordinates(SatPassError):
	pass


class FetchError(SatPassError):
	"""Retrieving an element set from the remote source failed."""


class PropagationInitError(SatPassError):
	"""The element set could not be compiled into a propagator model."""


class PropagationSampleError(SatPassError):
	"""Propagation to a single instant failed (decayed orbit, numeric error)."""
