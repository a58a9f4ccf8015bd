import os
import pathlib
import typing

import numpy
import pytest
import soundfile

import autoamb.config
import autoamb.inventory


SAMPLE_RATE = 8000


def make_layer (name: str = "drip", **data: typing.Any) -> autoamb.config.LayerConfig:

	"""Build a layer from keyword configuration, with one set and one keyframe by default."""

	data.setdefault("sets", {"norm": "drip_.*\\.wav"})
	data.setdefault("intensity", {0: {}})

	return autoamb.config.parse_layer(name, data)


def make_track (**data: typing.Any) -> autoamb.config.TrackConfig:

	"""Build a track config from keyword settings."""

	return autoamb.config.parse_track(data)


def write_tone (
	path: typing.Union[str, pathlib.Path],
	seconds: float,
	channels: int = 2,
	sample_rate: int = SAMPLE_RATE,
	level: float = 0.5
) -> str:

	"""Write a constant-level clip and return its path."""

	frames = int(round(seconds * sample_rate))
	data = numpy.full((frames, channels), level, dtype=numpy.float32)
	soundfile.write(str(path), data, sample_rate, subtype="FLOAT")

	return str(path)


@pytest.fixture
def drip_assets () -> autoamb.inventory.LayerAssets:

	"""An in-memory inventory with two sets of short clips."""

	return autoamb.inventory.LayerAssets.from_durations("sounds/drp", {
		"solo": {"drip_04.wav": 1.0, "drip_05.wav": 1.5, "drip_06.wav": 0.5},
		"norm": {"drip_00.wav": 2.0, "drip_01.wav": 2.5},
	})


@pytest.fixture
def audio_dir (tmp_path: pathlib.Path) -> pathlib.Path:

	"""A sound library on disk: <root>/drp with mono, stereo and quad clips."""

	category = tmp_path / "drp"
	category.mkdir()

	write_tone(category / "drip_00.wav", 0.5, channels=1)
	write_tone(category / "drip_01.wav", 0.25, channels=2)
	write_tone(category / "drip_02.wav", 0.75, channels=4)
	(category / "drip_03.wav").write_bytes(b"not audio")
	(category / "notes.txt").write_text("ignored")

	return tmp_path


@pytest.fixture
def station_config (audio_dir: pathlib.Path, tmp_path: pathlib.Path) -> autoamb.config.SoundscapeConfig:

	"""A small complete configuration over ``audio_dir``."""

	return autoamb.config.parse_config({
		"track": {
			"audio_dir": str(audio_dir),
			"output_dir": os.path.join(str(tmp_path), "out"),
			"output_file": "station.wav",
			"duration": 6,
			"chunk_duration": 2,
			"schedule_granularity": 0.1,
			"max_dynamic_layers": 1,
			"layer_duration_range": [2, 3],
			"sample_rate": SAMPLE_RATE,
			"seed": 7,
		},
		"layers": {
			"drip": {
				"category": "drp",
				"volume": 0.5,
				"directionality": "unique",
				"sets": {"all": "drip_0[0-2]\\.wav"},
				"intensity": {0: {"frequency": 1, "variance": 0.5}, 2: {"frequency": 3}},
			},
			"hum": {
				"category": "drp",
				"is_constant": True,
				"buffer_between_sounds": True,
				"sets": {"bed": "drip_00\\.wav"},
				"intensity": {0: {"frequency": 0, "volume": 0.2}},
			},
		},
	})
