from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from .utils import load_yaml

DEFAULT_TLE_URL = "https://celestrak.org/NORAD/elements/gp.php"

OPEN_PASS_POLICIES = ("discard", "flush")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Server:
	host: str = "0.0.0.0"
	port: int = 3000


@dataclass
class ObserverQTH:
	latitude_deg: float = 37.7749
	longitude_deg: float = -122.4194
	altitude_m: float = 0.0


@dataclass
class Source:
	url: str = DEFAULT_TLE_URL
	timeout_sec: float = 10.0


@dataclass
class Cache:
	"""Element sets older than `ttl_hours` are refetched; 24 h is the service contract."""

	ttl_hours: float = 24.0


@dataclass
class Prediction:
	"""Prediction window from request time; the API promises 24 h by default."""

	window_hours: int = 24
	# What to do with a pass still above the threshold when the window ends
	open_pass_policy: str = "discard"


@dataclass
class Paths:
	logs_dir: str = "logs"


@dataclass
class Logging:
	level: str = "INFO"


@dataclass
class Config:
	server: Server = field(default_factory=Server)
	observer: ObserverQTH = field(default_factory=ObserverQTH)
	source: Source = field(default_factory=Source)
	cache: Cache = field(default_factory=Cache)
	prediction: Prediction = field(default_factory=Prediction)
	paths: Paths = field(default_factory=Paths)
	logging: Logging = field(default_factory=Logging)


_ENV_MAP = {
	"SATPASS_HOST": ("server", "host", str),
	"SATPASS_PORT": ("server", "port", int),
	"SATPASS_LAT": ("observer", "latitude_deg", float),
	"SATPASS_LON": ("observer", "longitude_deg", float),
	"SATPASS_ALT_M": ("observer", "altitude_m", float),
	"SATPASS_TLE_URL": ("source", "url", str),
	"SATPASS_TIMEOUT_SEC": ("source", "timeout_sec", float),
	"SATPASS_CACHE_TTL_H": ("cache", "ttl_hours", float),
	"SATPASS_WINDOW_H": ("prediction", "window_hours", int),
	"SATPASS_OPEN_PASS_POLICY": ("prediction", "open_pass_policy", lambda v: str(v).strip().lower()),
	"SATPASS_LOGS_DIR": ("paths", "logs_dir", str),
	"SATPASS_LOG_LEVEL": ("logging", "level", lambda v: str(v).strip().upper()),
}


def _apply_env_overrides(cfg: Config, env: Optional[dict] = None) -> Config:
	env = os.environ if env is None else env
	for key, (section, field_name, caster) in _ENV_MAP.items():
		if key not in env:
			continue
		setattr(getattr(cfg, section), field_name, caster(env[key]))
	return cfg


def _merge_from_mapping(cfg: Config, data: dict) -> Config:
	# Shallow merge for known sections
	if "server" in data:
		s = data["server"]
		cfg.server.host = str(s.get("host", cfg.server.host))
		cfg.server.port = int(s.get("port", cfg.server.port))
	if "observer" in data:
		q = data["observer"]
		cfg.observer.latitude_deg = float(q.get("lat", q.get("latitude", cfg.observer.latitude_deg)))
		cfg.observer.longitude_deg = float(q.get("lon", q.get("longitude", cfg.observer.longitude_deg)))
		cfg.observer.altitude_m = float(q.get("alt", q.get("altitude", cfg.observer.altitude_m)))
	if "source" in data:
		s = data["source"]
		cfg.source.url = str(s.get("url", cfg.source.url))
		cfg.source.timeout_sec = float(s.get("timeout", s.get("timeout_sec", cfg.source.timeout_sec)))
	if "cache" in data:
		c = data["cache"]
		cfg.cache.ttl_hours = float(c.get("ttl", c.get("ttl_hours", cfg.cache.ttl_hours)))
	if "prediction" in data:
		p = data["prediction"]
		cfg.prediction.window_hours = int(p.get("window", p.get("window_hours", cfg.prediction.window_hours)))
		cfg.prediction.open_pass_policy = str(
			p.get("open_pass_policy", cfg.prediction.open_pass_policy)
		).lower()
	if "paths" in data:
		p = data["paths"]
		cfg.paths.logs_dir = str(p.get("logs", p.get("logs_dir", cfg.paths.logs_dir)))
	if "logging" in data:
		cfg.logging.level = str(data["logging"].get("level", cfg.logging.level)).upper()
	return cfg


def validate_config(cfg: Config) -> Config:
	if cfg.prediction.open_pass_policy not in OPEN_PASS_POLICIES:
		raise ValueError(
			f"open_pass_policy must be one of {OPEN_PASS_POLICIES}, "
			f"got {cfg.prediction.open_pass_policy!r}"
		)
	if cfg.prediction.window_hours < 0:
		raise ValueError("prediction window_hours must not be negative")
	if cfg.logging.level not in LOG_LEVELS:
		raise ValueError(f"logging level must be one of {LOG_LEVELS}, got {cfg.logging.level!r}")
	if cfg.cache.ttl_hours < 0:
		raise ValueError("cache ttl_hours must not be negative")
	if cfg.source.timeout_sec <= 0:
		raise ValueError("source timeout_sec must be positive")
	return cfg


def load_config(path: Optional[str] = None, env: Optional[dict] = None) -> Config:
	cfg = Config()
	if path:
		data = load_yaml(path)
		if isinstance(data, dict):
			cfg = _merge_from_mapping(cfg, data)
	cfg = _apply_env_overrides(cfg, env)
	return validate_config(cfg)
