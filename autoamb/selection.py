"""File selection within a set.

Random selection favours clips that have played least: each file weighs
``1 / (1 + play_count)``, and the file played last weighs nothing while
any alternative exists, so a clip never repeats back-to-back unless it
is the only one.
"""

import typing

import autoamb.inventory
import autoamb.rng


def recency_weights (assets: autoamb.inventory.SetAssets) -> typing.List[float]:

	"""
	Return the selection weight of each file in a set.
	"""

	has_alternative = len(assets.files) > 1

	return [
		0.0 if has_alternative and filename == assets.last_played else 1.0 / (1 + count)
		for filename, count in zip(assets.files, assets.play_counts)
	]


def choose_weighted_index (weights: typing.Sequence[float], rng: autoamb.rng.RandomSource) -> int:

	"""
	Choose an index in proportion to its weight.

	Zero weights are never chosen.  Raises ``ValueError`` if no weight is positive.
	"""

	total_weight = sum(w for w in weights if w > 0)

	if total_weight <= 0:
		raise ValueError("At least one weight must be positive")

	roll = rng.uniform(0, total_weight)
	accum = 0.0
	last_positive = 0

	for index, weight in enumerate(weights):

		if weight <= 0:
			continue

		accum += weight
		last_positive = index

		if roll <= accum:
			return index

	return last_positive


def select_weighted (assets: autoamb.inventory.SetAssets, rng: autoamb.rng.RandomSource) -> typing.Optional[int]:

	"""
	Pick a file index by weighted recency, or ``None`` if the set is empty.
	"""

	if assets.is_empty:
		return None

	return choose_weighted_index(recency_weights(assets), rng)
