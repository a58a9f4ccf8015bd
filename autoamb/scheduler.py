"""Event scheduling: turning active layers into timed sound events.

For every tick ``[tick_start, tick_start + schedule_granularity)`` and
every active layer, each eligible set follows one of three policies:

- **Chained** (``buffer_between_sounds``): the next clip starts after the
  previous one ends plus an interval of ``frequency_unit / frequency``
  with Gaussian jitter scaled by ``variance``.  A frequency of 0 means
  "again straight away" with only the jitter as spacing.  Layers that
  cycle share one chain across their sets so rotating never resets timing.
- **Grid** (no buffering, zero variance): events land on multiples of
  ``frequency_unit / frequency``; each grid point is claimed by the tick
  whose start is within half a tick of it.
- **Jitter** (no buffering, non-zero variance): a Poisson number of
  events per tick, clamped to ``variance`` standard deviations around the
  mean, each at a uniform random time within the tick.

With ``cycle_mode = "sets"`` one set is eligible per tick (round-robin)
and events never overlap across sets; with ``cycle_mode = "files"`` the
layer walks through all of its files in order.  Candidates that would run
past the end of the track are dropped.
"""

import dataclasses
import itertools
import logging
import math
import typing

import autoamb.config
import autoamb.constants
import autoamb.intensity
import autoamb.inventory
import autoamb.rng
import autoamb.selection


logger = logging.getLogger(__name__)


# (set name, time) -> volume; used when volume follows intensity during playback.
VolumeFn = typing.Callable[[str, float], float]

# Upper bound on chained events per chain per tick (clips are never zero-length).
MAX_CHAINED_PER_TICK = 1000


@dataclasses.dataclass
class Position:

	"""
	Where an event sits in the stereo field.

	``pan`` is in [-1, 1] (negative = left); ``distance`` is a gain in [0, 1].
	"""

	pan: float
	distance: float


@dataclasses.dataclass (order=True)
class SoundEvent:

	"""
	One clip scheduled on the whole-track timeline.

	Events sort by start time.  ``duration`` is the clip's sounding length
	on the timeline (the source length divided by ``pitch_speed``);
	``offset`` is how much of it earlier chunks already played.
	"""

	start: float
	duration: float = dataclasses.field(compare=False)
	file: str = dataclasses.field(compare=False)
	filename: str = dataclasses.field(compare=False)
	layer: str = dataclasses.field(compare=False)
	set_name: str = dataclasses.field(compare=False)
	volume: float = dataclasses.field(compare=False)
	volume_end: typing.Optional[float] = dataclasses.field(compare=False, default=None)
	pan: typing.Optional[float] = dataclasses.field(compare=False, default=None)
	distance: typing.Optional[float] = dataclasses.field(compare=False, default=None)
	pitch_speed: typing.Optional[float] = dataclasses.field(compare=False, default=None)
	offset: float = dataclasses.field(compare=False, default=0.0)
	is_carry_over: bool = dataclasses.field(compare=False, default=False)
	play_count: int = dataclasses.field(compare=False, default=0)
	event_id: int = dataclasses.field(compare=False, default=0)

	@property
	def remaining (self) -> float:

		"""Sounding time left from ``start``."""

		return self.duration - self.offset

	@property
	def end (self) -> float:

		"""Time at which the clip stops sounding."""

		return self.start + self.remaining


	def volume_at (self, fraction: float) -> float:

		"""
		Return the volume ``fraction`` (0..1) of the way through the whole clip.
		"""

		if self.volume_end is None:
			return self.volume

		return self.volume + (self.volume_end - self.volume) * fraction


@dataclasses.dataclass
class SchedulerState:

	"""
	Per-layer scheduling memory, renewed whenever the layer is (re)activated.

	Attributes:
		activation_time: When the layer last became active; chains start here unless a clip still sounds.
		chain_ends: End time of the last chained event, by set or ``CYCLE_KEY``.
		pending_starts: Next chained start already drawn, by set or ``CYCLE_KEY``.
		last_starts: Last grid start per set, so a grid point is used once.
		cycle_index: Position in the set or file rotation (kept across activations).
		busy_until: End of the latest event; rotating sets never overlap it.
		shared_position: The layer's position for ``"shared"`` directionality.
	"""

	activation_time: float = 0.0
	chain_ends: typing.Dict[str, float] = dataclasses.field(default_factory=dict)
	pending_starts: typing.Dict[str, float] = dataclasses.field(default_factory=dict)
	last_starts: typing.Dict[str, float] = dataclasses.field(default_factory=dict)
	cycle_index: int = 0
	busy_until: float = 0.0
	shared_position: typing.Optional[Position] = None


@dataclasses.dataclass
class TickResult:

	"""
	Events produced for one layer in one tick, and the per-set target counts.
	"""

	events: typing.List[SoundEvent] = dataclasses.field(default_factory=list)
	counts: typing.Dict[str, int] = dataclasses.field(default_factory=dict)


def target_count (rng: autoamb.rng.RandomSource, expected: float, variance: float) -> int:

	"""
	Draw how many events a jittered set plays in one tick.

	A Poisson draw with mean ``expected``, clamped to
	``[floor(expected - spread), ceil(expected + spread)]`` where
	``spread = variance * sqrt(expected)``.
	"""

	if expected <= 0:
		return 0

	spread = variance * math.sqrt(expected)
	low = max(0, math.floor(expected - spread))
	high = math.ceil(expected + spread)

	return min(high, max(low, rng.poisson(expected)))


class EventScheduler:

	"""
	Decides, tick by tick, which clips each active layer plays.
	"""

	def __init__ (self, track: autoamb.config.TrackConfig, rng: autoamb.rng.RandomSource) -> None:

		"""
		Create a scheduler for one track.
		"""

		self.track = track
		self.rng = rng

		self._layers: typing.Dict[str, autoamb.config.LayerConfig] = {}
		self._assets: typing.Dict[str, autoamb.inventory.LayerAssets] = {}
		self._states: typing.Dict[str, SchedulerState] = {}
		self._event_ids = itertools.count()


	def add_layer (self, layer: autoamb.config.LayerConfig, assets: autoamb.inventory.LayerAssets) -> None:

		"""
		Register a layer and its inventory.
		"""

		self._layers[layer.name] = layer
		self._assets[layer.name] = assets
		self._states[layer.name] = SchedulerState()


	def state (self, name: str) -> SchedulerState:

		"""
		Return a layer's scheduling state.
		"""

		return self._states[name]


	def activate (self, name: str, time: float) -> None:

		"""
		Start a new activation at ``time``.

		Chains restart at ``time``, or where a clip from the previous activation
		stops if it is still sounding.  The shared position is redrawn on first
		use and any drawn-but-unplayed chain start is discarded.  The rotation
		index and busy time carry on.
		"""

		previous = self._states[name]

		self._states[name] = SchedulerState(
			activation_time = time,
			chain_ends = {key: max(time, end) for key, end in previous.chain_ends.items()},
			cycle_index = previous.cycle_index,
			busy_until = previous.busy_until,
		)


	def schedule_tick (
		self,
		name: str,
		tick_start: float,
		parameters: typing.Dict[str, autoamb.intensity.SetParameters],
		volume_fn: typing.Optional[VolumeFn] = None
	) -> TickResult:

		"""
		Schedule one layer for the tick starting at ``tick_start``.

		Parameters:
			name: Layer name.
			tick_start: Start of the tick on the track timeline.
			parameters: Interpolated parameters per set at this tick.
			volume_fn: When given, events get a start/end volume pair from
				this function instead of the tick's constant volume.
		"""

		layer = self._layers[name]
		result = TickResult()

		if layer.buffer_between_sounds:
			self._schedule_chained(layer, tick_start, parameters, volume_fn, result)
			return result

		state = self._states[name]

		for set_name in self._eligible_sets(layer, state):

			params = parameters[set_name]

			if params.variance == 0:
				self._schedule_grid(layer, set_name, tick_start, parameters, volume_fn, result)
			else:
				self._schedule_jitter(layer, set_name, tick_start, parameters, volume_fn, result)

		return result


	def _eligible_sets (self, layer: autoamb.config.LayerConfig, state: SchedulerState) -> typing.List[str]:

		"""
		Return the sets that may play this tick.
		"""

		assets = self._assets[layer.name]

		if layer.cycle_mode == "sets":
			current = self._current_cycle_set(layer, state)
			return [current] if current is not None else []

		if layer.cycle_mode == "files":
			located = assets.file_at(state.cycle_index)
			return [located[0]] if located is not None else []

		return [set_name for set_name in layer.set_names if not assets.sets[set_name].is_empty]


	def _current_cycle_set (self, layer: autoamb.config.LayerConfig, state: SchedulerState) -> typing.Optional[str]:

		"""
		Return the set at the rotation index, skipping (and moving past) empty sets.
		"""

		assets = self._assets[layer.name]
		names = layer.set_names

		for step in range(len(names)):
			index = (state.cycle_index + step) % len(names)
			if not assets.sets[names[index]].is_empty:
				state.cycle_index = index
				return names[index]

		return None


	def _chain_interval (self, params: autoamb.intensity.SetParameters) -> float:

		"""
		Draw the gap between the end of one chained clip and the next start.
		"""

		jitter = self.rng.normal(0.0, params.variance) if params.variance > 0 else 0.0

		if params.frequency > 0:
			base = self.track.frequency_unit / params.frequency
			return max(0.0, base + base * jitter)

		return abs(jitter)


	def _shortest_clip (
		self,
		layer: autoamb.config.LayerConfig,
		set_name: typing.Optional[str],
		parameters: typing.Dict[str, autoamb.intensity.SetParameters]
	) -> float:

		"""
		Return the shortest timeline duration any clip of the set (or of the whole layer) can have.
		"""

		assets = self._assets[layer.name]
		shortest = math.inf

		for name in ([set_name] if set_name is not None else layer.set_names):

			durations = assets.sets[name].durations

			if not durations:
				continue

			pitch_range = parameters[name].pitch_speed_range
			fastest = pitch_range[1] if pitch_range is not None else 1.0
			shortest = min(shortest, min(durations) / fastest)

		return shortest


	def _schedule_chained (
		self,
		layer: autoamb.config.LayerConfig,
		tick_start: float,
		parameters: typing.Dict[str, autoamb.intensity.SetParameters],
		volume_fn: typing.Optional[VolumeFn],
		result: TickResult
	) -> None:

		"""
		Chain clips back to back for every chain whose next start falls in this tick.
		"""

		state = self._states[layer.name]
		tick_end = tick_start + self.track.schedule_granularity

		if layer.cycles:
			chains: typing.List[typing.Tuple[str, typing.Optional[str]]] = [(autoamb.constants.CYCLE_KEY, None)]
		else:
			chains = [(set_name, set_name) for set_name in self._eligible_sets(layer, state)]

		for key, fixed_set in chains:

			for _ in range(MAX_CHAINED_PER_TICK):

				if fixed_set is not None:
					set_name = fixed_set
				else:
					eligible = self._eligible_sets(layer, state)
					if not eligible:
						break
					set_name = eligible[0]

				pending = state.pending_starts.get(key)

				if pending is None:
					reference = state.chain_ends.get(key, state.activation_time)
					pending = reference + self._chain_interval(parameters[set_name])
					state.pending_starts[key] = pending

				if pending >= tick_end or pending >= self.track.duration:
					break

				if pending + self._shortest_clip(layer, fixed_set, parameters) > self.track.duration + autoamb.constants.TIME_EPSILON:
					break

				del state.pending_starts[key]
				event = self._emit(layer, set_name, pending, parameters, volume_fn)

				if event is None:
					# The chain resumes from the dropped candidate on a later tick.
					state.chain_ends[key] = pending
					break

				result.events.append(event)
				result.counts[event.set_name] = result.counts.get(event.set_name, 0) + 1
				state.chain_ends[key] = event.start + event.duration


	def _schedule_grid (
		self,
		layer: autoamb.config.LayerConfig,
		set_name: str,
		tick_start: float,
		parameters: typing.Dict[str, autoamb.intensity.SetParameters],
		volume_fn: typing.Optional[VolumeFn],
		result: TickResult
	) -> None:

		"""
		Emit every grid point within half a tick of ``tick_start``.
		"""

		params = parameters[set_name]
		state = self._states[layer.name]

		if params.frequency <= 0:
			result.counts.setdefault(set_name, 0)
			return

		interval = self.track.frequency_unit / params.frequency
		half = self.track.schedule_granularity / 2
		low = tick_start - half
		high = tick_start + half
		step = math.floor(low / interval) + 1
		emitted = 0

		while step * interval <= high:

			candidate = step * interval
			step += 1

			if candidate < 0 or candidate >= self.track.duration:
				continue

			if candidate <= state.last_starts.get(set_name, -math.inf):
				continue

			state.last_starts[set_name] = candidate
			event = self._emit(layer, set_name, candidate, parameters, volume_fn)

			if event is not None:
				result.events.append(event)
				emitted += 1

		result.counts[set_name] = result.counts.get(set_name, 0) + emitted


	def _schedule_jitter (
		self,
		layer: autoamb.config.LayerConfig,
		set_name: str,
		tick_start: float,
		parameters: typing.Dict[str, autoamb.intensity.SetParameters],
		volume_fn: typing.Optional[VolumeFn],
		result: TickResult
	) -> None:

		"""
		Emit a clamped-Poisson number of events at random times within the tick.
		"""

		params = parameters[set_name]
		granularity = self.track.schedule_granularity
		expected = params.frequency * granularity / self.track.frequency_unit
		count = target_count(self.rng, expected, params.variance)
		result.counts[set_name] = result.counts.get(set_name, 0) + count

		for _ in range(count):

			start = tick_start + self.rng.random() * granularity

			if start >= self.track.duration:
				continue

			event = self._emit(layer, set_name, start, parameters, volume_fn)

			if event is not None:
				result.events.append(event)


	def _pick_file (self, layer: autoamb.config.LayerConfig, set_name: str) -> typing.Optional[typing.Tuple[str, int]]:

		"""
		Choose the (set, file index) to play for a set that is due.
		"""

		assets = self._assets[layer.name]

		if layer.cycle_mode == "files":
			# The whole layer is one narrative: the next file in order, whichever set holds it.
			return assets.file_at(self._states[layer.name].cycle_index)

		index = autoamb.selection.select_weighted(assets.sets[set_name], self.rng)

		if index is None:
			return None

		return (set_name, index)


	def _draw_position (self) -> Position:

		"""
		Draw a random pan (either side of centre) and distance.
		"""

		pan = autoamb.rng.gaussian_clamp(self.rng, autoamb.constants.PAN_MEAN, autoamb.constants.PAN_SIGMA)

		if self.rng.random() < 0.5:
			pan = -pan

		distance = autoamb.rng.gaussian_clamp(self.rng, autoamb.constants.DISTANCE_MEAN, autoamb.constants.DISTANCE_SIGMA)

		return Position(pan=pan, distance=distance)


	def _position (self, state: SchedulerState, directionality: str) -> typing.Optional[Position]:

		"""
		Return the event position for a directionality mode.
		"""

		if directionality == "unique":
			return self._draw_position()

		if directionality == "shared":
			if state.shared_position is None:
				state.shared_position = self._draw_position()
			return state.shared_position

		return None


	def _emit (
		self,
		layer: autoamb.config.LayerConfig,
		set_name: str,
		start: float,
		parameters: typing.Dict[str, autoamb.intensity.SetParameters],
		volume_fn: typing.Optional[VolumeFn]
	) -> typing.Optional[SoundEvent]:

		"""
		Build one event starting at ``start``, or return ``None`` if it cannot play.

		Updates play counts, last-played file, rotation index and busy time.
		"""

		state = self._states[layer.name]
		picked = self._pick_file(layer, set_name)

		if picked is None:
			logger.debug(f"No file selectable for {layer.name} set {set_name} at {start:.2f}s")
			return None

		set_name, index = picked
		set_assets = self._assets[layer.name].sets[set_name]
		params = parameters[set_name]

		pitch_speed: typing.Optional[float] = None

		if params.pitch_speed_range is not None:
			pitch_speed = self.rng.uniform(*params.pitch_speed_range)

		duration = set_assets.durations[index] / (pitch_speed or 1.0)

		if start + duration > self.track.duration + autoamb.constants.TIME_EPSILON:
			logger.debug(f"Dropping {layer.name} {set_assets.files[index]} at {start:.2f}s: runs past the end of the track")
			return None

		if layer.cycle_mode == "sets" and start < state.busy_until - autoamb.constants.TIME_EPSILON:
			logger.debug(f"Dropping {layer.name} {set_assets.files[index]} at {start:.2f}s: previous set still sounding")
			return None

		position = self._position(state, params.directionality)

		volume = params.volume
		volume_end: typing.Optional[float] = None

		if volume_fn is not None:
			volume = volume_fn(set_name, start)
			volume_end = volume_fn(set_name, start + duration)

		filename = set_assets.files[index]
		play_count = set_assets.record_play(index)
		state.busy_until = max(state.busy_until, start + duration)

		if layer.cycle_mode == "sets":
			state.cycle_index = (state.cycle_index + 1) % len(layer.set_names)

		elif layer.cycle_mode == "files":
			state.cycle_index = (state.cycle_index + 1) % max(1, self._assets[layer.name].total_files)

		return SoundEvent(
			start = start,
			duration = duration,
			file = self._assets[layer.name].path(filename),
			filename = filename,
			layer = layer.name,
			set_name = set_name,
			volume = volume,
			volume_end = volume_end,
			pan = position.pan if position else None,
			distance = position.distance if position else None,
			pitch_speed = pitch_speed,
			play_count = play_count,
			event_id = next(self._event_ids),
		)
