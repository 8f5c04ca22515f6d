import argparse
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

from . import __version__
from .api import create_app, format_pass, observer_from_degrees
from .cache import ElementSetCache
from .config import Config, load_config, validate_config
from .errors import FetchError, InvalidCoordinates, PropagationInitError
from .predict import detect_passes
from .propagation import Sgp4Propagator, SkyfieldFrameConverter
from .tle import ElementSetFetcher
from .utils import load_dotenv_if_present, setup_logging, utc_now


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="sat-passes",
		description="Predict visible passes of an Earth-orbiting object.",
	)
	parser.add_argument(
		"--config",
		type=str,
		help="Path to config YAML file",
	)
	parser.add_argument(
		"--version",
		action="store_true",
		help="Show version and exit",
	)

	subparsers = parser.add_subparsers(dest="command", required=False)

	serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
	serve_parser.add_argument("--host", type=str, help="Bind address")
	serve_parser.add_argument("--port", type=int, help="Listen port")

	list_parser = subparsers.add_parser(
		"list-passes", help="List predicted passes for one object"
	)
	list_parser.add_argument(
		"--satellite", required=True, help="NORAD catalog number, e.g. 25544"
	)
	list_parser.add_argument("--lat", type=float, help="Observer latitude in degrees")
	list_parser.add_argument("--lon", type=float, help="Observer longitude in degrees")
	list_parser.add_argument("--alt", type=float, help="Observer altitude in meters")
	list_parser.add_argument("--hours", type=int, help="Override window length in hours")

	return parser


def _apply_cli_overrides(cfg: Config, args: argparse.Namespace) -> Config:
	if getattr(args, "host", None) is not None:
		cfg.server.host = args.host
	if getattr(args, "port", None) is not None:
		cfg.server.port = int(args.port)
	if getattr(args, "lat", None) is not None:
		cfg.observer.latitude_deg = float(args.lat)
	if getattr(args, "lon", None) is not None:
		cfg.observer.longitude_deg = float(args.lon)
	if getattr(args, "alt", None) is not None:
		cfg.observer.altitude_m = float(args.alt)
	if getattr(args, "hours", None) is not None:
		cfg.prediction.window_hours = int(args.hours)
	return cfg


def _list_passes(cfg: Config, satellite_id: str) -> int:
	try:
		observer = observer_from_degrees(
			cfg.observer.latitude_deg,
			cfg.observer.longitude_deg,
			height_m=cfg.observer.altitude_m,
		)
	except InvalidCoordinates as e:
		print(f"{e}: lat={cfg.observer.latitude_deg} lon={cfg.observer.longitude_deg}")
		return 2

	fetcher = ElementSetFetcher(
		ElementSetCache(ttl=timedelta(hours=cfg.cache.ttl_hours)),
		url=cfg.source.url,
		timeout_sec=cfg.source.timeout_sec,
	)
	propagator = Sgp4Propagator()
	try:
		element_set = fetcher.fetch(satellite_id)
		satellite = propagator.compile(element_set)
	except (FetchError, PropagationInitError) as e:
		print(f"Cannot predict passes for {satellite_id}: {e}")
		return 1

	start = utc_now()
	passes = detect_passes(
		satellite,
		observer,
		start,
		start + timedelta(hours=cfg.prediction.window_hours),
		propagator,
		SkyfieldFrameConverter(),
		open_pass_policy=cfg.prediction.open_pass_policy,
	)
	if not passes:
		print(f"No passes of {element_set.name} within the window.")
		return 0
	for p in passes:
		row = format_pass(p)
		print(
			f"{element_set.name}: rise {row['startTime']} az {row['azimuthStart']}  "
			f"set {row['endTime']} az {row['azimuthEnd']}  "
			f"max_el {row['maxElevation']}  dur {row['duration']} min"
		)
	return 0


def main(argv: Optional[list[str]] = None) -> int:
	argv = argv if argv is not None else sys.argv[1:]
	parser = build_parser()
	args = parser.parse_args(argv)

	if args.version:
		print(__version__)
		return 0

	load_dotenv_if_present()
	cfg = load_config(args.config)
	cfg = validate_config(_apply_cli_overrides(cfg, args))

	setup_logging(Path(cfg.paths.logs_dir), console_level=cfg.logging.level)

	if args.command == "serve":
		app = create_app(cfg)
		app.run(host=cfg.server.host, port=cfg.server.port, threaded=True)
		return 0
	elif args.command == "list-passes":
		return _list_passes(cfg, args.satellite)
	else:
		parser.print_help()
		return 0


if __name__ == "__main__":
	sys.exit(main())
