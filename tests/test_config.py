import pathlib

import pytest

import autoamb.config

import conftest


def test_nested_and_flat_parameters_parse_to_the_same_tiers () -> None:

	"""Per-set values spelled flat ({set}_{param}) land in the same typed map as nested ones."""

	nested = conftest.make_layer(
		sets = {"solo": "a", "norm": "b"},
		set_overrides = {"norm": {"variance": 0}},
		intensity = {0: {"volume": 0.1, "sets": {"solo": {"frequency": 0.1}}}},
	)

	flat = conftest.make_layer(
		sets = {"solo": "a", "norm": "b"},
		norm_variance = 0,
		intensity = {0: {"volume": 0.1, "solo_rate": 0.1}},
	)

	assert nested.set_overrides == flat.set_overrides
	assert nested.keyframes == flat.keyframes
	assert flat.keyframes[0].sets["solo"].frequency == 0.1
	assert flat.set_overrides["norm"].variance == 0.0


def test_longest_set_name_wins_for_flat_keys () -> None:

	"""A flat key is split on the longest matching set name."""

	layer = conftest.make_layer(sets={"a": "x", "a_b": "y"}, intensity={0: {"a_b_volume": 2}})

	assert layer.keyframes[0].sets["a_b"].volume == 2.0
	assert "a" not in layer.keyframes[0].sets


def test_keyframes_are_sorted_by_level () -> None:

	"""Keyframe levels may be written in any order and as strings."""

	layer = conftest.make_layer(intensity={"2": {"volume": 3}, 0: {"volume": 0.1}, 0.5: {}})

	assert [kf.level for kf in layer.keyframes] == [0.0, 0.5, 2.0]


def test_legacy_camel_case_keys () -> None:

	"""Older camelCase keys are accepted on layers and on the track."""

	layer = conftest.make_layer(
		sets = {"in": "i", "out": "o"},
		bufferBetweenSounds = True,
		cycleThrough = "sets",
		isConstant = True,
		pitchSpeedRange = [0.9, 1.1],
	)

	assert layer.buffer_between_sounds
	assert layer.cycle_mode == "sets"
	assert layer.is_constant
	assert layer.defaults.pitch_speed_range == (0.9, 1.1)

	track = autoamb.config.parse_track({"chunkDuration": 10, "scheduleGranularity": 0.05, "maxDynamicLayers": 3})

	assert track.chunk_duration == 10.0
	assert track.schedule_granularity == 0.05
	assert track.max_dynamic_layers == 3


def test_single_pattern_sets_become_one_named_set () -> None:

	"""A bare pattern string makes a set named after the layer."""

	layer = conftest.make_layer("hum", sets="hum_.*")

	assert layer.sets == {"hum": "hum_.*"}


def test_range_accepts_mapping () -> None:

	"""Ranges may be written as {min, max}."""

	layer = conftest.make_layer(pitch_speed_range={"min": 0.8, "max": 1.2})

	assert layer.defaults.pitch_speed_range == (0.8, 1.2)


@pytest.mark.parametrize("data, message", [
	({"directionality": "left"}, "directionality"),
	({"cycle_mode": "random"}, "cycle_mode"),
	({"pitch_speed_range": [1.2, 0.8]}, "inverted"),
	({"sets": {"bad": "("}}, "invalid pattern"),
	({"sets": {}}, "no sets"),
	({"intensity": {}}, "keyframe"),
	({"volume": -1}, "negative"),
	({"sparkle": 1}, "unknown key"),
	({"intensity": {0: {"sets": {"missing": {"volume": 1}}}}}, "unknown set"),
])
def test_invalid_layers_raise_config_error (data: dict, message: str) -> None:

	"""Invalid layer settings raise ConfigError naming the problem."""

	with pytest.raises(autoamb.config.ConfigError, match=message):
		conftest.make_layer(**data)


@pytest.mark.parametrize("data", [
	{"duration": 0},
	{"chunk_duration": -5},
	{"schedule_granularity": 0},
	{"frequency_unit": 0},
	{"layer_duration_range": [300, 150]},
	{"envelope_curve": "exponential"},
	{"tempo": 120},
])
def test_invalid_tracks_raise_config_error (data: dict) -> None:

	"""Invalid track settings raise ConfigError."""

	with pytest.raises(autoamb.config.ConfigError):
		autoamb.config.parse_track(data)


def test_config_error_is_a_value_error () -> None:

	"""Callers catching ValueError also catch configuration problems."""

	assert issubclass(autoamb.config.ConfigError, ValueError)


def test_track_tick_and_chunk_counts () -> None:

	"""Ticks cover the track exactly; the last chunk may be short."""

	track = autoamb.config.parse_track({"duration": 65, "chunk_duration": 30, "schedule_granularity": 0.1})

	assert track.tick_count == 650
	assert track.chunk_count == 3


def test_load_config_reads_yaml (tmp_path: pathlib.Path) -> None:

	"""A YAML file with track and layers sections loads into typed config."""

	path = tmp_path / "config.yaml"
	path.write_text(
		"track:\n"
		"  duration: 120\n"
		"  volume_envelope: true\n"
		"layers:\n"
		"  drip:\n"
		"    category: drp\n"
		"    sets: {solo: 'water_drips_0[4-9].ogg', norm: 'water_drips_0[0-3].ogg'}\n"
		"    intensity:\n"
		"      0: {volume: 0.1, sets: {solo: {frequency: 0.1}}}\n"
		"      2: {volume: 3, frequency: 0.5}\n"
	)

	config = autoamb.config.load_config(str(path))

	assert config.track.duration == 120.0
	assert config.track.volume_envelope is True
	assert config.layers["drip"].category == "drp"
	assert config.layers["drip"].set_names == ["solo", "norm"]
	assert config.layers["drip"].keyframes[1].defaults.frequency == 0.5


def test_legacy_config_section (tmp_path: pathlib.Path) -> None:

	"""The older top-level 'config' section is read as the track section."""

	config = autoamb.config.parse_config({"config": {"duration": 42}})

	assert config.track.duration == 42.0


def test_missing_config_file_uses_defaults (tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture) -> None:

	"""A missing file logs a warning and yields the default configuration."""

	config = autoamb.config.load_config(str(tmp_path / "absent.yaml"))

	assert config.track == autoamb.config.TrackConfig()
	assert config.layers == {}
	assert "not found" in caplog.text
