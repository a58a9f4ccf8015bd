import random

import pytest

import autoamb.inventory
import autoamb.rng
import autoamb.selection


def _set (*names: str) -> autoamb.inventory.SetAssets:

	return autoamb.inventory.SetAssets(files=list(names), durations=[1.0] * len(names))


def test_weights_favour_less_played_files () -> None:

	"""Each file weighs 1 / (1 + play count)."""

	assets = _set("a", "b", "c")
	assets.play_counts = [0, 1, 3]

	assert autoamb.selection.recency_weights(assets) == [1.0, 0.5, 0.25]


def test_last_played_file_weighs_nothing () -> None:

	"""The file played last is excluded while an alternative exists."""

	assets = _set("a", "b")
	assets.record_play(0)

	assert autoamb.selection.recency_weights(assets) == [0.0, 1.0]


def test_single_file_may_repeat () -> None:

	"""With only one file it stays selectable after playing."""

	assets = _set("only")
	rng = autoamb.rng.make_random(1)

	for _ in range(5):
		index = autoamb.selection.select_weighted(assets, rng)
		assert index == 0
		assets.record_play(index)

	assert assets.play_counts == [5]


def test_never_repeats_the_previous_file () -> None:

	"""Over 1000 picks from two or more files, no pick equals the one before."""

	for names in (("a", "b"), ("a", "b", "c", "d")):

		assets = _set(*names)
		rng = autoamb.rng.make_random(99)
		previous = None

		for _ in range(1000):
			index = autoamb.selection.select_weighted(assets, rng)
			assert assets.files[index] != previous
			previous = assets.files[index]
			assets.record_play(index)


def test_underplayed_files_are_preferred () -> None:

	"""A fresh file is picked far more often than a heavily played one."""

	assets = _set("fresh", "worn")
	assets.play_counts = [0, 99]
	rng = autoamb.rng.make_random(4)

	picks = [autoamb.selection.select_weighted(assets, rng) for _ in range(1000)]

	assert picks.count(0) > 900


def test_empty_set_selects_nothing () -> None:

	"""An empty set yields None."""

	empty = autoamb.inventory.SetAssets()

	assert autoamb.selection.select_weighted(empty, autoamb.rng.make_random(1)) is None


def test_zero_weights_are_never_chosen () -> None:

	"""Zero-weight entries are skipped even at the edges of the roll."""

	rng = random.Random(0)

	for _ in range(200):
		assert autoamb.selection.choose_weighted_index([0.0, 2.0, 0.0], rng) == 1


def test_no_positive_weight_raises () -> None:

	"""All-zero weights are rejected."""

	with pytest.raises(ValueError):
		autoamb.selection.choose_weighted_index([0.0, 0.0], random.Random(0))
