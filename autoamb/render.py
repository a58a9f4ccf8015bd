"""Rendering chunks of scheduled events to audio.

The scheduler and timeline only need something that satisfies
:class:`RenderEngine`.  :class:`SampleRenderEngine` is the default: it
decodes clips with ``soundfile``, mixes them into a silent stereo buffer
of exactly the chunk's length with ``numpy`` and joins chunk buffers into
the finished track.

Per event it:

- folds the source to stereo (quad ``L = c0 + c2``, ``R = c1 + c3``; mono
  to both channels; anything else keeps its first two channels)
- seeks to the event's offset
- applies the pitch/speed factor by resampling (faster is higher and shorter)
- applies pan gains ``L = (1 - pan) / 2``, ``R = (1 + pan) / 2``
  (``0.5`` each when unpanned), distance attenuation, the event volume or
  its start/end envelope, and the master volume
- places the result ``start - chunk_start`` seconds into the chunk

Any failure is raised as :class:`RenderError`; a missing chunk cannot be
concatenated, so the run stops.
"""

import logging
import math
import os
import typing

import numpy
import soundfile

import autoamb.config
import autoamb.constants
import autoamb.scheduler


logger = logging.getLogger(__name__)


# Floor for the loudness curve, which interpolates in decibels.
_SILENCE_GAIN = 1e-4


class RenderError (RuntimeError):

	"""
	Raised when a chunk cannot be decoded, mixed or written.
	"""


@typing.runtime_checkable
class RenderEngine (typing.Protocol):

	"""
	Turns chunks of events into audio buffers and joins them.
	"""

	def render_chunk (self, events: typing.Sequence[autoamb.scheduler.SoundEvent], chunk_start: float, chunk_end: float) -> numpy.ndarray:
		...

	def concatenate (self, buffers: typing.Sequence[numpy.ndarray]) -> numpy.ndarray:
		...


def to_stereo (data: numpy.ndarray) -> numpy.ndarray:

	"""
	Fold a ``(frames, channels)`` array to ``(frames, 2)``.
	"""

	channels = data.shape[1]

	if channels == 1:
		return numpy.repeat(data, 2, axis=1)

	if channels == 4:
		return numpy.stack((data[:, 0] + data[:, 2], data[:, 1] + data[:, 3]), axis=1)

	return data[:, :2]


def resample (data: numpy.ndarray, ratio: float, frames: typing.Optional[int] = None, start: float = 0.0) -> numpy.ndarray:

	"""
	Read ``data`` at ``ratio`` source frames per output frame, from ``start``.

	Linear interpolation per channel.  ``frames`` limits the output length;
	by default it runs to the end of the source.
	"""

	last = len(data) - 1
	available = int(math.floor((last - start) / ratio)) + 1 if 0 <= start <= last else 0
	frames = available if frames is None else max(0, min(frames, available))

	if frames == 0:
		return numpy.zeros((0, data.shape[1]), dtype=numpy.float32)

	positions = start + numpy.arange(frames) * ratio
	source = numpy.arange(len(data))

	return numpy.stack(
		[numpy.interp(positions, source, data[:, channel]) for channel in range(data.shape[1])],
		axis=1
	).astype(numpy.float32)


def pan_gains (pan: typing.Optional[float]) -> typing.Tuple[float, float]:

	"""
	Return (left, right) gains for a pan position in [-1, 1].
	"""

	if pan is None:
		return (0.5, 0.5)

	return ((1.0 - pan) / 2.0, (1.0 + pan) / 2.0)


def envelope (start_volume: float, end_volume: float, fractions: numpy.ndarray, curve: str = "linear") -> numpy.ndarray:

	"""
	Return per-frame gains moving from ``start_volume`` to ``end_volume``.

	``fractions`` are positions (0..1) through the whole clip.  The
	``"loudness"`` curve interpolates in decibels, which sounds even to the
	ear; ``"linear"`` interpolates amplitude.
	"""

	if curve == "loudness":
		low = math.log10(max(start_volume, _SILENCE_GAIN))
		high = math.log10(max(end_volume, _SILENCE_GAIN))
		return numpy.power(10.0, low + (high - low) * fractions)

	return start_volume + (end_volume - start_volume) * fractions


class SampleRenderEngine:

	"""
	Mixes decoded sample clips into stereo ``float32`` buffers.
	"""

	def __init__ (
		self,
		sample_rate: int = autoamb.constants.DEFAULT_SAMPLE_RATE,
		master_volume: float = 1.0,
		envelope_curve: str = "linear"
	) -> None:

		"""
		Create an engine.

		Parameters:
			sample_rate: Output rate; sources at other rates are resampled.
			master_volume: Gain applied to every event.
			envelope_curve: ``"linear"`` or ``"loudness"`` for start/end volume ramps.
		"""

		if envelope_curve not in autoamb.config.ENVELOPE_CURVES:
			raise ValueError(f"envelope_curve must be one of {autoamb.config.ENVELOPE_CURVES}, got {envelope_curve!r}")

		self.sample_rate = sample_rate
		self.master_volume = master_volume
		self.envelope_curve = envelope_curve

		self._cache: typing.Dict[str, numpy.ndarray] = {}


	def load (self, path: str) -> numpy.ndarray:

		"""
		Decode a clip as stereo at the engine's rate (cached per path).
		"""

		cached = self._cache.get(path)

		if cached is not None:
			return cached

		try:
			data, rate = soundfile.read(path, dtype="float32", always_2d=True)

		except (RuntimeError, OSError) as exc:
			raise RenderError(f"Cannot decode {path}: {exc}") from exc

		stereo = to_stereo(data)

		if rate != self.sample_rate:
			stereo = resample(stereo, rate / self.sample_rate)

		self._cache[path] = stereo

		return stereo


	def render_chunk (self, events: typing.Sequence[autoamb.scheduler.SoundEvent], chunk_start: float, chunk_end: float) -> numpy.ndarray:

		"""
		Mix every event into a silent buffer covering ``[chunk_start, chunk_end)``.
		"""

		frames = int(round((chunk_end - chunk_start) * self.sample_rate))
		buffer = numpy.zeros((frames, 2), dtype=numpy.float32)

		for event in events:
			self.mix(buffer, event, chunk_start)

		return buffer


	def mix (self, buffer: numpy.ndarray, event: autoamb.scheduler.SoundEvent, chunk_start: float) -> None:

		"""
		Add one event into ``buffer``, which starts at ``chunk_start``.
		"""

		source = self.load(event.file)
		speed = event.pitch_speed or 1.0
		delay = max(0, int(round((event.start - chunk_start) * self.sample_rate)))

		if delay >= len(buffer):
			return

		# Offsets are timeline seconds; the source advances ``speed`` times faster.
		source_start = event.offset * speed * self.sample_rate
		frames = min(len(buffer) - delay, int(round(event.remaining * self.sample_rate)))

		if speed == 1.0:
			first = int(round(source_start))
			clip = source[first:first + frames]
		else:
			clip = resample(source, speed, frames=frames, start=source_start)

		if len(clip) == 0:
			return

		left, right = pan_gains(event.pan)
		gain = self.master_volume * (event.distance if event.distance is not None else 1.0)
		clip = clip * numpy.array([left, right], dtype=numpy.float32) * gain

		if event.volume_end is None:
			clip = clip * event.volume
		else:
			played = event.offset * self.sample_rate + numpy.arange(len(clip))
			fractions = played / max(1.0, event.duration * self.sample_rate)
			gains = envelope(event.volume, event.volume_end, numpy.clip(fractions, 0.0, 1.0), self.envelope_curve)
			clip = clip * gains[:, numpy.newaxis]

		buffer[delay:delay + len(clip)] += clip.astype(numpy.float32)


	def concatenate (self, buffers: typing.Sequence[numpy.ndarray]) -> numpy.ndarray:

		"""
		Join chunk buffers end to end.
		"""

		if not buffers:
			logger.warning("No chunks to concatenate")
			return numpy.zeros((0, 2), dtype=numpy.float32)

		return numpy.concatenate(buffers, axis=0)


def export (audio: numpy.ndarray, path: str, sample_rate: int = autoamb.constants.DEFAULT_SAMPLE_RATE) -> str:

	"""
	Clip ``audio`` to [-1, 1] and write it to ``path``.

	The format follows the file extension.  Raises :class:`RenderError` if
	the file cannot be written.
	"""

	directory = os.path.dirname(path)

	try:
		if directory:
			os.makedirs(directory, exist_ok=True)
		soundfile.write(path, numpy.clip(audio, -1.0, 1.0), sample_rate)

	except (RuntimeError, OSError, TypeError, ValueError) as exc:
		raise RenderError(f"Cannot write {path}: {exc}") from exc

	logger.info(f"Wrote {len(audio) / sample_rate:.1f}s of audio to {path}")

	return path
