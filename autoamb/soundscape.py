"""The soundscape run: schedule every tick, assemble chunks, render, export.

Example:
	```python
	import autoamb

	config = autoamb.load_config("station.yaml")
	soundscape = autoamb.Soundscape(config)

	plan = soundscape.plan()          # scheduling only, no audio touched
	path = soundscape.render(plan)    # mix, concatenate and write the track
	```

Scheduling is single-threaded and runs strictly in tick order; every
random draw comes from one injected source, so a seeded run always
produces the same plan.
"""

import dataclasses
import logging
import os
import typing

import autoamb.config
import autoamb.diagnostics
import autoamb.director
import autoamb.intensity
import autoamb.inventory
import autoamb.render
import autoamb.rng
import autoamb.scheduler
import autoamb.timeline


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Plan:

	"""
	A fully scheduled track, ready to render.

	Attributes:
		events: Every scheduled event, sorted by start time.
		chunks: The events distributed over render chunks, with continuations.
		intensity_log: One record per active layer per tick.
	"""

	events: typing.List[autoamb.scheduler.SoundEvent]
	chunks: typing.List[autoamb.timeline.Chunk]
	intensity_log: typing.List[autoamb.diagnostics.IntensityRecord] = dataclasses.field(default_factory=list)

	@property
	def chunk_counts (self) -> typing.List[typing.Dict[str, int]]:

		"""Fresh events per layer, for each chunk."""

		return [autoamb.timeline.layer_counts(chunk) for chunk in self.chunks]


	def timeline_log (self) -> typing.List[autoamb.diagnostics.TimelineRecord]:

		"""
		Return one record per event fragment, chunk by chunk.
		"""

		return [
			autoamb.diagnostics.TimelineRecord.from_event(chunk.index, chunk.start, event)
			for chunk in self.chunks
			for event in chunk.events
		]


class Soundscape:

	"""
	Runs one configured soundscape from scheduling to the written file.
	"""

	def __init__ (
		self,
		config: autoamb.config.SoundscapeConfig,
		assets: typing.Optional[typing.Dict[str, autoamb.inventory.LayerAssets]] = None,
		rng: typing.Optional[autoamb.rng.RandomSource] = None,
		render_engine: typing.Optional[autoamb.render.RenderEngine] = None
	) -> None:

		"""
		Create a run.

		Parameters:
			config: Track and layer configuration.
			assets: Inventories by layer name.  Layers without one are scanned
				from ``audio_dir`` when planning.
			rng: Random source; by default seeded from ``track.seed``.
			render_engine: Defaults to a :class:`~autoamb.render.SampleRenderEngine`
				using the track's sample rate, volume and envelope curve.
		"""

		track = config.track

		self.config = config
		self.assets: typing.Dict[str, autoamb.inventory.LayerAssets] = dict(assets or {})
		self.rng = rng if rng is not None else autoamb.rng.make_random(track.seed)

		if render_engine is None:
			render_engine = autoamb.render.SampleRenderEngine(
				sample_rate = track.sample_rate,
				master_volume = track.volume,
				envelope_curve = track.envelope_curve,
			)

		self.render_engine = render_engine
		self.timer = autoamb.diagnostics.RunTimer()


	def load_assets (self) -> typing.Dict[str, autoamb.inventory.LayerAssets]:

		"""
		Scan the inventory of every layer that does not have one yet.
		"""

		for name, layer in self.config.layers.items():
			if name not in self.assets:
				self.assets[name] = autoamb.inventory.load_assets(self.config.track.audio_dir, layer)

		return self.assets


	def plan (self) -> Plan:

		"""
		Schedule the whole track and split it into chunks.
		"""

		track = self.config.track
		layers = self.config.layers
		assets = self.load_assets()

		self.timer.start("scheduling")

		director = autoamb.director.Director(
			layers,
			self.rng,
			max_dynamic_layers = track.max_dynamic_layers,
			lifespan_range = track.layer_duration_range,
		)

		scheduler = autoamb.scheduler.EventScheduler(track, self.rng)

		for name, layer in layers.items():
			scheduler.add_layer(layer, assets[name])

		# Constant layers are active from the start and never reported as activated.
		for name in director.active_layers:
			scheduler.activate(name, 0.0)

		events: typing.List[autoamb.scheduler.SoundEvent] = []
		intensity_log: typing.List[autoamb.diagnostics.IntensityRecord] = []

		for tick in range(track.tick_count):

			tick_start = tick * track.schedule_granularity
			update = director.update(tick_start)

			for name in update.activated:
				scheduler.activate(name, tick_start)

			for name in director.active_layers:

				layer = layers[name]
				intensity = director.intensity(name, tick_start)
				parameters = autoamb.intensity.evaluate(layer, intensity)

				volume_fn = self._volume_fn(director, layer) if track.volume_envelope else None
				result = scheduler.schedule_tick(name, tick_start, parameters, volume_fn)
				events.extend(result.events)

				intensity_log.append(self._intensity_record(tick, tick_start, layer, intensity, parameters, result))

		events.sort()
		chunks = autoamb.timeline.assemble(events, track.duration, track.chunk_duration)

		elapsed = self.timer.stop("scheduling")
		logger.info(f"Scheduled {len(events)} events over {track.duration:.1f}s in {elapsed:.3f}s")

		plan = Plan(events=events, chunks=chunks, intensity_log=intensity_log)

		for chunk, counts in zip(plan.chunks, plan.chunk_counts):
			summary = ", ".join(f"{layer}: {count}" for layer, count in sorted(counts.items())) or "no new events"
			logger.info(f"Chunk {chunk.index} ({chunk.start:.1f}s to {chunk.end:.1f}s): {summary}")

		return plan


	def _volume_fn (self, director: autoamb.director.Director, layer: autoamb.config.LayerConfig) -> autoamb.scheduler.VolumeFn:

		"""
		Return a function giving a set's volume at any time during the current activation.
		"""

		def volume_at (set_name: str, time: float) -> float:
			return autoamb.intensity.evaluate_set(layer, director.intensity(layer.name, time), set_name).volume

		return volume_at


	def _intensity_record (
		self,
		tick: int,
		tick_start: float,
		layer: autoamb.config.LayerConfig,
		intensity: float,
		parameters: typing.Dict[str, autoamb.intensity.SetParameters],
		result: autoamb.scheduler.TickResult
	) -> autoamb.diagnostics.IntensityRecord:

		"""Snapshot one layer's interpolated parameters and counts for the intensity log."""

		track = self.config.track
		record = autoamb.diagnostics.IntensityRecord(tick=tick, time=tick_start, layer=layer.name, intensity=intensity)

		for set_name, params in parameters.items():
			record.sets[set_name] = autoamb.diagnostics.SetSnapshot(
				frequency = params.frequency,
				scaled_frequency = params.frequency * track.schedule_granularity / track.frequency_unit,
				target_count = result.counts.get(set_name, 0),
				volume = params.volume,
			)

		return record


	def write_logs (self, plan: Plan) -> typing.List[str]:

		"""
		Write the intensity and timeline logs to the output directory.
		"""

		output_dir = self.config.track.output_dir

		return [
			autoamb.diagnostics.write_log(plan.intensity_log, os.path.join(output_dir, autoamb.diagnostics.INTENSITY_LOG)),
			autoamb.diagnostics.write_log(plan.timeline_log(), os.path.join(output_dir, autoamb.diagnostics.TIMELINE_LOG)),
		]


	def render (self, plan: typing.Optional[Plan] = None) -> str:

		"""
		Render every chunk in order, write the track and the logs, return the track path.

		Raises :class:`~autoamb.render.RenderError` if any chunk fails; nothing
		is written in that case.
		"""

		if plan is None:
			plan = self.plan()

		track = self.config.track
		buffers = []

		self.timer.start("rendering")

		for chunk in plan.chunks:

			logger.info(f"Rendering chunk {chunk.index + 1}/{len(plan.chunks)} ({len(chunk.events)} events)")

			try:
				buffers.append(self.render_engine.render_chunk(chunk.events, chunk.start, chunk.end))

			except autoamb.render.RenderError:
				raise

			except (RuntimeError, OSError, ValueError) as exc:
				raise autoamb.render.RenderError(f"Chunk {chunk.index} failed: {exc}") from exc

		audio = self.render_engine.concatenate(buffers)
		path = autoamb.render.export(audio, os.path.join(track.output_dir, track.output_file), track.sample_rate)

		self.timer.stop("rendering")

		self.write_logs(plan)
		self.timer.report(len(plan.chunks), len(plan.events))

		return path
