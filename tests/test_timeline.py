import pytest

import autoamb.scheduler
import autoamb.timeline


def _event (start: float, duration: float, layer: str = "drip", event_id: int = 0) -> autoamb.scheduler.SoundEvent:

	return autoamb.scheduler.SoundEvent(
		start = start,
		duration = duration,
		file = f"sounds/{layer}.wav",
		filename = f"{layer}.wav",
		layer = layer,
		set_name = "norm",
		volume = 1.0,
		event_id = event_id,
	)


def test_event_crossing_a_boundary_continues_in_the_next_chunk () -> None:

	"""An event at 25s lasting 10s plays whole in chunk 0 and continues in chunk 1 at offset 5."""

	chunks = autoamb.timeline.assemble([_event(25.0, 10.0)], duration=60.0, chunk_duration=30.0)

	assert len(chunks) == 2

	fresh = chunks[0].events[0]
	assert fresh.start == 25.0
	assert fresh.offset == 0.0
	assert not fresh.is_carry_over

	carried = chunks[1].events[0]
	assert carried.start == 30.0
	assert carried.offset == 5.0
	assert carried.duration == 10.0
	assert carried.is_carry_over
	assert carried.end == 35.0


def test_split_is_pure () -> None:

	"""Splitting returns new events and leaves the input untouched."""

	event = _event(25.0, 10.0)
	fragment, continuation = autoamb.timeline.split_event(event, 0.0, 30.0)

	assert fragment is event
	assert event.offset == 0.0 and event.start == 25.0
	assert continuation is not event


def test_event_ending_inside_the_chunk_has_no_continuation () -> None:

	"""A clip that finishes by the chunk end is not split."""

	_, continuation = autoamb.timeline.split_event(_event(20.0, 10.0), 0.0, 30.0)

	assert continuation is None


def test_long_event_spans_several_chunks () -> None:

	"""A clip longer than a chunk is carried through every chunk it sounds in."""

	chunks = autoamb.timeline.assemble([_event(5.0, 25.0)], duration=40.0, chunk_duration=10.0)

	offsets = [[event.offset for event in chunk.events] for chunk in chunks]

	assert offsets == [[0.0], [5.0], [15.0], []]
	assert [chunk.events[0].start for chunk in chunks[:3]] == [5.0, 10.0, 20.0]


def test_consumed_durations_sum_to_the_clip_length () -> None:

	"""The time a clip sounds in each chunk adds up to its full duration."""

	original = _event(7.3, 31.9)
	chunks = autoamb.timeline.assemble([original], duration=60.0, chunk_duration=8.0)

	total = 0.0

	for chunk in chunks:
		for event in chunk.events:
			assert event.event_id == original.event_id
			total += autoamb.timeline.consumed(event, chunk.end)

	assert total == pytest.approx(original.duration)


def test_chunk_bounds_shorten_the_last_chunk () -> None:

	"""The final chunk ends at the track end."""

	assert autoamb.timeline.chunk_bounds(65.0, 30.0) == [(0.0, 30.0), (30.0, 60.0), (60.0, 65.0)]
	assert autoamb.timeline.chunk_bounds(60.0, 30.0) == [(0.0, 30.0), (30.0, 60.0)]


def test_events_go_to_the_chunk_they_start_in () -> None:

	"""Fresh events are placed by start time, continuations listed first."""

	events = [_event(31.0, 1.0, "b"), _event(29.5, 1.0, "a"), _event(0.0, 2.0, "c"), _event(30.0, 1.0, "d")]
	chunks = autoamb.timeline.assemble(events, duration=60.0, chunk_duration=30.0)

	assert [event.layer for event in chunks[0].events] == ["c", "a"]
	assert [(event.layer, event.is_carry_over) for event in chunks[1].events] == [("a", True), ("d", False), ("b", False)]


def test_layer_counts_ignore_continuations () -> None:

	"""Per-chunk counts include only events starting in the chunk."""

	events = [_event(29.0, 5.0, "drip"), _event(31.0, 1.0, "drip"), _event(40.0, 1.0, "hum")]
	chunks = autoamb.timeline.assemble(events, duration=60.0, chunk_duration=30.0)

	assert autoamb.timeline.layer_counts(chunks[0]) == {"drip": 1}
	assert autoamb.timeline.layer_counts(chunks[1]) == {"drip": 1, "hum": 1}


def test_empty_schedule_gives_empty_chunks () -> None:

	"""Chunks exist for the whole track even with nothing scheduled."""

	chunks = autoamb.timeline.assemble([], duration=10.0, chunk_duration=4.0)

	assert [(chunk.start, chunk.end) for chunk in chunks] == [(0.0, 4.0), (4.0, 8.0), (8.0, 10.0)]
	assert all(chunk.events == [] for chunk in chunks)
