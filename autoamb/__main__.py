import argparse
import logging
import sys
import typing

import autoamb.config
import autoamb.render
import autoamb.soundscape


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main (argv: typing.Optional[typing.List[str]] = None) -> int:

	"""
	Main entry point for the autoamb application.
	"""

	parser = argparse.ArgumentParser(prog="autoamb", description="Render a generative ambient soundscape.")
	parser.add_argument("config", nargs="?", default="config.yaml", help="YAML configuration file")
	parser.add_argument("--plan-only", action="store_true", help="schedule and write the logs without rendering audio")
	parser.add_argument("--seed", type=int, default=None, help="override the configured random seed")
	args = parser.parse_args(argv)

	logger.info("AutoAmb starting...")

	try:
		config = autoamb.config.load_config(args.config)
	except autoamb.config.ConfigError as exc:
		logger.error(f"Invalid configuration: {exc}")
		return 2

	if args.seed is not None:
		config.track.seed = args.seed

	soundscape = autoamb.soundscape.Soundscape(config)

	if args.plan_only:
		plan = soundscape.plan()
		soundscape.write_logs(plan)
		return 0

	try:
		path = soundscape.render()
	except autoamb.render.RenderError as exc:
		logger.error(f"Rendering failed: {exc}")
		return 1

	logger.info(f"Soundscape written to {path}")

	return 0


if __name__ == "__main__":
	sys.exit(main())
