"""Timeline assembly: splitting the schedule into render chunks.

The track is cut into fixed-length chunks (the last one may be shorter).
Each chunk holds the events that start inside it plus continuations of
events still sounding from the chunk before.  A clip that crosses a
boundary is never truncated or restarted: its continuation starts at the
boundary with ``offset`` advanced by the time already played, so the
renderer picks the source up exactly where the previous chunk left it.
"""

import collections
import dataclasses
import logging
import math
import typing

import autoamb.constants
import autoamb.scheduler


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Chunk:

	"""
	One render unit: a time range and everything sounding in it.

	``events`` lists carried-over continuations first, then fresh events
	in start order.
	"""

	index: int
	start: float
	end: float
	events: typing.List[autoamb.scheduler.SoundEvent] = dataclasses.field(default_factory=list)

	@property
	def duration (self) -> float:

		"""Length of the chunk in seconds."""

		return self.end - self.start

	@property
	def fresh_events (self) -> typing.List[autoamb.scheduler.SoundEvent]:

		"""Events that start in this chunk (not continuations)."""

		return [event for event in self.events if not event.is_carry_over]


def chunk_bounds (duration: float, chunk_duration: float) -> typing.List[typing.Tuple[float, float]]:

	"""
	Return (start, end) of every chunk covering ``[0, duration)``.
	"""

	if duration <= 0 or chunk_duration <= 0:
		raise ValueError("duration and chunk_duration must be positive")

	count = int(math.ceil(duration / chunk_duration - autoamb.constants.TIME_EPSILON))

	return [(index * chunk_duration, min((index + 1) * chunk_duration, duration)) for index in range(count)]


def consumed (event: autoamb.scheduler.SoundEvent, chunk_end: float) -> float:

	"""
	Return how much of ``event`` sounds before ``chunk_end``.
	"""

	return max(0.0, min(event.end, chunk_end) - event.start)


def split_event (
	event: autoamb.scheduler.SoundEvent,
	chunk_start: float,
	chunk_end: float
) -> typing.Tuple[autoamb.scheduler.SoundEvent, typing.Optional[autoamb.scheduler.SoundEvent]]:

	"""
	Split an event at a chunk boundary.

	Returns the fragment rendered in ``[chunk_start, chunk_end)`` (the event
	itself; the chunk buffer bounds it) and, if the clip sounds past
	``chunk_end``, its continuation for the next chunk.  Pure: the input
	event is not modified.

	Example:
		```python
		fragment, rest = split_event(event_at_25s_lasting_10s, 0.0, 30.0)
		# rest.start == 30.0, rest.offset == 5.0, rest.duration == 10.0
		```
	"""

	if event.start < chunk_start - autoamb.constants.TIME_EPSILON:
		raise ValueError(f"Event at {event.start}s starts before chunk {chunk_start}s")

	if event.end <= chunk_end + autoamb.constants.TIME_EPSILON:
		return event, None

	continuation = dataclasses.replace(
		event,
		start = chunk_end,
		offset = event.offset + consumed(event, chunk_end),
		is_carry_over = True,
	)

	return event, continuation


def assemble (
	events: typing.Iterable[autoamb.scheduler.SoundEvent],
	duration: float,
	chunk_duration: float
) -> typing.List[Chunk]:

	"""
	Sort events and distribute them, with continuations, over chunks.
	"""

	ordered = sorted(events)
	chunks: typing.List[Chunk] = []
	carried: typing.List[autoamb.scheduler.SoundEvent] = []
	position = 0

	for index, (start, end) in enumerate(chunk_bounds(duration, chunk_duration)):

		chunk = Chunk(index=index, start=start, end=end, events=carried)
		carried = []

		while position < len(ordered) and ordered[position].start < end:
			chunk.events.append(ordered[position])
			position += 1

		for event in chunk.events:
			_, continuation = split_event(event, start, end)
			if continuation is not None:
				carried.append(continuation)

		chunks.append(chunk)

	if carried or position < len(ordered):
		logger.warning(f"{len(carried) + len(ordered) - position} events sound past the end of the track and were cut")

	return chunks


def layer_counts (chunk: Chunk) -> typing.Dict[str, int]:

	"""
	Count the fresh events per layer in a chunk.
	"""

	return dict(collections.Counter(event.layer for event in chunk.fresh_events))
