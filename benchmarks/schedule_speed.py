"""Scheduling speed benchmark.

Plans a synthetic soundscape (in-memory clip inventories, no audio
decoded) several times and reports how long the tick loop takes.

Usage:
    python benchmarks/schedule_speed.py [--minutes M] [--layers N]
                                        [--granularity G] [--runs R]

Options:
    --minutes M         Track length in minutes (default: 30)
    --layers N          Number of dynamic layers (default: 8)
    --granularity G     Scheduling tick in seconds (default: 0.1)
    --runs R            Timed runs (default: 5)
"""

import argparse
import logging
import statistics
import time

# Suppress scheduling logs during the benchmark; we want clean output.
logging.basicConfig(level=logging.ERROR)

import autoamb.config
import autoamb.inventory
import autoamb.soundscape

# ---------------------------------------------------------------------------

# (buffer_between_sounds, cycle_mode, variance): one of each timing policy.
POLICIES = [
	(False, None, 0.5),
	(False, None, 0.0),
	(True, None, 0.2),
	(True, "sets", 0.0),
]


def _build (minutes: float, layers: int, granularity: float) -> autoamb.soundscape.Soundscape:

	"""Build a soundscape with ``layers`` dynamic layers plus a constant bed."""

	data = {
		"track": {
			"duration": minutes * 60,
			"schedule_granularity": granularity,
			"max_dynamic_layers": max(1, layers // 2),
			"layer_duration_range": [60, 180],
			"seed": 1,
		},
		"layers": {
			"bed": {
				"is_constant": True,
				"buffer_between_sounds": True,
				"sets": {"norm": "bed"},
				"intensity": {0: {"frequency": 0}},
			},
		},
	}

	assets = {"bed": autoamb.inventory.LayerAssets.from_durations("bed", {"norm": {"bed_00.wav": 20.0}})}

	for index in range(layers):

		buffered, cycle_mode, variance = POLICIES[index % len(POLICIES)]
		name = f"layer{index:02d}"

		data["layers"][name] = {
			"buffer_between_sounds": buffered,
			"cycle_mode": cycle_mode,
			"directionality": "unique",
			"pitch_speed_range": [0.9, 1.1],
			"sets": {"a": "a", "b": "b"},
			"intensity": {0: {"frequency": 0.2, "variance": variance}, 2: {"frequency": 2}},
		}

		assets[name] = autoamb.inventory.LayerAssets.from_durations(name, {
			"a": {f"a_{i:02d}.wav": 0.5 + 0.1 * i for i in range(8)},
			"b": {f"b_{i:02d}.wav": 1.0 + 0.2 * i for i in range(5)},
		})

	return autoamb.soundscape.Soundscape(autoamb.config.parse_config(data), assets=assets)


def _run_benchmark (minutes: float, layers: int, granularity: float, runs: int) -> tuple[list[float], int]:

	"""Plan ``runs`` times and return the durations and the event count of the last run."""

	durations: list[float] = []
	events = 0

	for _ in range(runs):
		soundscape = _build(minutes, layers, granularity)
		started = time.perf_counter()
		plan = soundscape.plan()
		durations.append(time.perf_counter() - started)
		events = len(plan.events)

	return durations, events


def _print_report (durations: list[float], events: int, minutes: float, layers: int, granularity: float) -> None:

	ticks = int(minutes * 60 / granularity)
	mean_s = statistics.mean(durations)
	stdev_s = statistics.stdev(durations) if len(durations) > 1 else 0.0

	print(f"\nSchedule Speed Benchmark: {minutes:.0f} min, {layers} layers, {granularity} s ticks")
	print(f"{'─' * 62}")
	print(f"  Ticks per run   : {ticks}")
	print(f"  Events per run  : {events}")
	print(f"  Runs            : {len(durations)}")
	print(f"{'─' * 62}")
	print(f"  Mean            : {mean_s:>8.3f} s")
	print(f"  Std deviation   : {stdev_s:>8.3f} s")
	print(f"  Fastest         : {min(durations):>8.3f} s")
	print(f"  Per tick        : {mean_s / ticks * 1e6:>8.1f} us")
	print(f"  Realtime factor : {minutes * 60 / mean_s:>8.0f} x")
	print()


def main () -> None:

	parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
	parser.add_argument("--minutes",     type=float, default=30,  help="Track length in minutes (default: 30)")
	parser.add_argument("--layers",      type=int,   default=8,   help="Dynamic layers (default: 8)")
	parser.add_argument("--granularity", type=float, default=0.1, help="Tick length in seconds (default: 0.1)")
	parser.add_argument("--runs",        type=int,   default=5,   help="Timed runs (default: 5)")
	args = parser.parse_args()

	durations, events = _run_benchmark(args.minutes, args.layers, args.granularity, args.runs)
	_print_report(durations, events, args.minutes, args.layers, args.granularity)


if __name__ == "__main__":
	main()
