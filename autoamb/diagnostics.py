"""Diagnostic logs written alongside a run.

Neither log drives anything; they exist to see what the scheduler and
renderer decided.  ``intensity_log.json`` holds one record per active
layer per tick; ``timeline_log.json`` one record per event fragment
mixed into a chunk.
"""

import dataclasses
import json
import logging
import os
import time
import typing

import autoamb.scheduler


logger = logging.getLogger(__name__)


INTENSITY_LOG = "intensity_log.json"
TIMELINE_LOG = "timeline_log.json"


@dataclasses.dataclass
class SetSnapshot:

	"""
	One set's interpolated rate and volume at a tick.
	"""

	frequency: float
	scaled_frequency: float
	target_count: int
	volume: float


@dataclasses.dataclass
class IntensityRecord:

	"""
	A layer's intensity and per-set parameters at one tick.
	"""

	tick: int
	time: float
	layer: str
	intensity: float
	sets: typing.Dict[str, SetSnapshot] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class TimelineRecord:

	"""
	One event fragment as mixed into a chunk.

	``delay_ms`` is where the fragment begins inside the chunk.
	"""

	chunk: int
	start: float
	delay_ms: float
	filename: str
	play_count: int
	set_name: str
	layer: str
	volume: float
	pan: typing.Optional[float]
	distance: typing.Optional[float]
	offset: float
	duration: float
	is_carry_over: bool

	@classmethod
	def from_event (cls, chunk: int, chunk_start: float, event: autoamb.scheduler.SoundEvent) -> "TimelineRecord":

		"""Describe one event fragment as placed in chunk ``chunk``."""

		return cls(
			chunk = chunk,
			start = event.start,
			delay_ms = (event.start - chunk_start) * 1000.0,
			filename = event.filename,
			play_count = event.play_count,
			set_name = event.set_name,
			layer = event.layer,
			volume = event.volume,
			pan = event.pan,
			distance = event.distance,
			offset = event.offset,
			duration = event.duration,
			is_carry_over = event.is_carry_over,
		)


def write_log (records: typing.Sequence[typing.Any], path: str) -> str:

	"""
	Write dataclass records to ``path`` as a JSON array.
	"""

	directory = os.path.dirname(path)

	if directory:
		os.makedirs(directory, exist_ok=True)

	with open(path, "w") as f:
		json.dump([dataclasses.asdict(record) for record in records], f, indent=2)

	logger.info(f"Wrote {len(records)} records to {path}")

	return path


class RunTimer:

	"""
	Wall-clock timings of the scheduling and rendering phases.
	"""

	def __init__ (self) -> None:

		self.phases: typing.Dict[str, float] = {}
		self._started: typing.Dict[str, float] = {}


	def start (self, phase: str) -> None:

		"""
		Start timing a phase.
		"""

		self._started[phase] = time.perf_counter()


	def stop (self, phase: str) -> float:

		"""
		Stop timing a phase and return its duration in seconds.
		"""

		elapsed = time.perf_counter() - self._started.pop(phase)
		self.phases[phase] = self.phases.get(phase, 0.0) + elapsed

		return elapsed


	def report (self, chunk_count: int, event_count: int) -> None:

		"""
		Log the phase timings and per-chunk rendering average.
		"""

		for phase, elapsed in self.phases.items():
			logger.info(f"{phase.capitalize()} took {elapsed:.3f}s")

		rendering = self.phases.get("rendering")

		if rendering is not None and chunk_count > 0:
			logger.info(f"Rendered {chunk_count} chunks ({event_count} events), {rendering / chunk_count:.3f}s per chunk")
