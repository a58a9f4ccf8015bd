import math

import pytest

import autoamb.director
import autoamb.rng

import conftest


def _layers (dynamic: int = 4, constant: int = 0) -> dict:

	layers = {}

	for i in range(dynamic):
		layer = conftest.make_layer(f"dyn{i}")
		layers[layer.name] = layer

	for i in range(constant):
		layer = conftest.make_layer(f"bed{i}", is_constant=True, constant_intensity=1.5)
		layers[layer.name] = layer

	return layers


def test_pool_never_exceeds_max_and_every_layer_activates () -> None:

	"""With two slots and four layers, at most two play and all take a turn."""

	director = autoamb.director.Director(_layers(4), autoamb.rng.make_random(3), max_dynamic_layers=2, lifespan_range=(5.0, 10.0))
	activated = set()
	retired = set()

	for tick in range(1200):

		time = tick * 0.1
		update = director.update(time)
		activated.update(update.activated)
		retired.update(update.retired)

		assert director.dynamic_count <= 2
		assert not set(director.active_layers) & set(director.queue)
		assert len(director.active_layers) + len(director.queue) == 4

	assert activated == {"dyn0", "dyn1", "dyn2", "dyn3"}
	assert retired == activated


def test_free_slots_fill_in_one_tick () -> None:

	"""All free slots are filled at once, not one per tick."""

	director = autoamb.director.Director(_layers(4), autoamb.rng.make_random(3), max_dynamic_layers=3)
	update = director.update(0.0)

	assert len(update.activated) == 3
	assert director.dynamic_count == 3


def test_constant_layers_are_always_active () -> None:

	"""Constant layers start active, never queue, never retire and report their fixed intensity."""

	director = autoamb.director.Director(_layers(2, constant=1), autoamb.rng.make_random(1), max_dynamic_layers=1, lifespan_range=(1.0, 1.0))

	assert director.is_active("bed0")
	assert "bed0" not in director.queue
	assert director.activation("bed0").retirement == math.inf

	for tick in range(100):
		update = director.update(tick * 0.1)
		assert "bed0" not in update.retired
		assert director.is_active("bed0")
		assert director.intensity("bed0", tick * 0.1) == 1.5


def test_constant_layers_do_not_take_dynamic_slots () -> None:

	"""The slot count covers non-constant layers only."""

	director = autoamb.director.Director(_layers(3, constant=2), autoamb.rng.make_random(1), max_dynamic_layers=2)
	director.update(0.0)

	assert director.dynamic_count == 2
	assert len(director.active_layers) == 4


def test_intensity_ramps_from_zero_to_two () -> None:

	"""A dynamic layer ramps linearly over its lifespan and is capped at 2."""

	director = autoamb.director.Director(_layers(1), autoamb.rng.make_random(1), max_dynamic_layers=1, lifespan_range=(10.0, 10.0))
	director.update(5.0)

	assert director.intensity("dyn0", 5.0) == 0.0
	assert director.intensity("dyn0", 7.5) == pytest.approx(0.5)
	assert director.intensity("dyn0", 10.0) == pytest.approx(1.0)
	assert director.intensity("dyn0", 15.0) == pytest.approx(2.0)
	assert director.intensity("dyn0", 99.0) == 2.0


def test_inactive_layers_report_zero () -> None:

	"""A queued layer has intensity 0."""

	director = autoamb.director.Director(_layers(2), autoamb.rng.make_random(1), max_dynamic_layers=1)
	director.update(0.0)
	waiting = director.queue[0]

	assert not director.is_active(waiting)
	assert director.intensity(waiting, 1.0) == 0.0


def test_retired_layers_rejoin_the_back_of_the_queue () -> None:

	"""A retiring layer is appended after those already waiting."""

	director = autoamb.director.Director(_layers(3), autoamb.rng.make_random(5), max_dynamic_layers=1, lifespan_range=(1.0, 1.0))
	first = director.update(0.0).activated[0]
	waiting = director.queue

	update = director.update(1.0)

	assert update.retired == [first]
	assert update.activated == [waiting[0]]
	assert director.queue == [waiting[1], first]


def test_reactivation_restarts_the_ramp () -> None:

	"""Intensity is measured from the current activation, not the first."""

	director = autoamb.director.Director(_layers(1), autoamb.rng.make_random(1), max_dynamic_layers=1, lifespan_range=(2.0, 2.0))
	director.update(0.0)
	update = director.update(2.0)

	assert update.retired == ["dyn0"]
	assert update.activated == ["dyn0"]
	assert director.activation("dyn0").activation_time == 2.0
	assert director.intensity("dyn0", 2.0) == 0.0


def test_pool_size_is_drawn_when_not_configured () -> None:

	"""Without a configured size the pool holds two to four layers."""

	for seed in range(20):
		director = autoamb.director.Director(_layers(6), autoamb.rng.make_random(seed))
		assert 2 <= director.max_dynamic_layers <= 4


def test_shuffle_is_deterministic_for_a_seed () -> None:

	"""The same seed gives the same queue order."""

	first = autoamb.director.Director(_layers(6), autoamb.rng.make_random(11), max_dynamic_layers=2)
	second = autoamb.director.Director(_layers(6), autoamb.rng.make_random(11), max_dynamic_layers=2)

	assert first.queue == second.queue
