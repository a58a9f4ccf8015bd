"""Soundscape configuration: track settings and layer definitions.

A configuration is a plain mapping (usually loaded from YAML) with two
sections::

	track:
	  duration: 300
	  chunk_duration: 30
	  schedule_granularity: 0.1
	layers:
	  drip:
	    category: drp
	    volume: 0.1
	    sets: {solo: 'water_drips_0[4-9].ogg', norm: 'water_drips_0[0-3].ogg'}
	    intensity:
	      0: {volume: 0.1, sets: {solo: {frequency: 0.1}}}
	      2: {volume: 3, frequency: 0.5}

Parameters may be given at four places, from most to least specific: on
a keyframe for one set, on a keyframe for every set, on the layer for
one set (``set_overrides``), and on the layer itself.  The older flat
spelling (``solo_frequency`` on a keyframe or a layer) and the camelCase
keys of earlier configuration files are normalised into the same typed
structures on load.
"""

import dataclasses
import logging
import math
import os
import re
import typing

import yaml

import autoamb.constants


logger = logging.getLogger(__name__)


DIRECTIONALITIES = ("none", "unique", "shared")
CYCLE_MODES = ("sets", "files")
ENVELOPE_CURVES = ("linear", "loudness")

PARAMETER_NAMES = ("volume", "frequency", "variance", "directionality", "pitch_speed_range")

_PARAMETER_ALIASES = {
	"volume": "volume",
	"frequency": "frequency",
	"rate": "frequency",
	"variance": "variance",
	"directionality": "directionality",
	"pitch_speed_range": "pitch_speed_range",
	"pitchSpeedRange": "pitch_speed_range",
}

_TRACK_ALIASES = {
	"audioDir": "audio_dir",
	"outputFile": "output_file",
	"outputDir": "output_dir",
	"chunkDuration": "chunk_duration",
	"scheduleGranularity": "schedule_granularity",
	"frequencyUnit": "frequency_unit",
	"maxDynamicLayers": "max_dynamic_layers",
	"layerDurationRange": "layer_duration_range",
	"volumeEnvelope": "volume_envelope",
	"envelopeCurve": "envelope_curve",
	"sampleRate": "sample_rate",
}

_LAYER_ALIASES = {
	"bufferBetweenSounds": "buffer_between_sounds",
	"cycleThrough": "cycle_mode",
	"cycleMode": "cycle_mode",
	"isConstant": "is_constant",
	"constantIntensity": "constant_intensity",
	"setOverrides": "set_overrides",
}

_LAYER_FLAGS = ("category", "sets", "intensity", "set_overrides", "buffer_between_sounds", "cycle_mode", "is_constant", "constant_intensity")


class ConfigError (ValueError):

	"""
	Raised when a configuration value is missing or invalid.
	"""


@dataclasses.dataclass
class ParameterValues:

	"""
	Parameter values defined at one level of the four-tier lookup.

	``None`` means "not defined here" so the lookup falls through to the
	next tier.
	"""

	volume: typing.Optional[float] = None
	frequency: typing.Optional[float] = None
	variance: typing.Optional[float] = None
	directionality: typing.Optional[str] = None
	pitch_speed_range: typing.Optional[typing.Tuple[float, float]] = None

	def get (self, name: str) -> typing.Any:

		"""
		Return the value of a parameter by name, or ``None`` when undefined.
		"""

		if name not in PARAMETER_NAMES:
			raise KeyError(f"Unknown parameter {name!r}")

		return getattr(self, name)


@dataclasses.dataclass
class IntensityKeyframe:

	"""
	Layer parameters pinned to one intensity level.
	"""

	level: float
	defaults: ParameterValues = dataclasses.field(default_factory=ParameterValues)
	sets: typing.Dict[str, ParameterValues] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class LayerConfig:

	"""
	One category of ambient sound and how it is scheduled.

	Attributes:
		name: Layer name (the key in the ``layers`` section).
		category: Sub-directory of the audio root holding this layer's files.
		sets: Set name to filename pattern (a regex matched against whole names).
		keyframes: Intensity keyframes sorted by level.
		defaults: Layer-level parameter defaults; ``defaults.volume`` is the base volume.
		set_overrides: Layer-level per-set parameter values.
		buffer_between_sounds: Chain each clip after the previous one ends (gapless).
		cycle_mode: ``"sets"``, ``"files"`` or ``None``.
		is_constant: Always active; never enters the director queue.
		constant_intensity: Intensity reported while the layer is constant.
	"""

	name: str
	category: str
	sets: typing.Dict[str, str]
	keyframes: typing.List[IntensityKeyframe]
	defaults: ParameterValues = dataclasses.field(default_factory=ParameterValues)
	set_overrides: typing.Dict[str, ParameterValues] = dataclasses.field(default_factory=dict)
	buffer_between_sounds: bool = False
	cycle_mode: typing.Optional[str] = None
	is_constant: bool = False
	constant_intensity: float = 1.0

	@property
	def set_names (self) -> typing.List[str]:

		"""Set names in configuration order."""

		return list(self.sets.keys())

	@property
	def volume (self) -> typing.Optional[float]:

		"""The layer's base volume."""

		return self.defaults.volume

	@property
	def cycles (self) -> bool:

		"""Whether only one set or file is eligible at a time."""

		return self.cycle_mode is not None


@dataclasses.dataclass
class TrackConfig:

	"""
	Whole-track settings: timing grid, output, director pool.
	"""

	audio_dir: str = "."
	output_file: str = "output.wav"
	output_dir: str = "out"
	duration: float = 300.0
	chunk_duration: float = 30.0
	schedule_granularity: float = 0.1
	frequency_unit: float = 1.0
	volume: float = 1.0
	max_dynamic_layers: typing.Optional[int] = None
	layer_duration_range: typing.Tuple[float, float] = autoamb.constants.DEFAULT_LAYER_DURATION_RANGE
	volume_envelope: bool = False
	envelope_curve: str = "linear"
	seed: typing.Optional[int] = None
	sample_rate: int = autoamb.constants.DEFAULT_SAMPLE_RATE

	@property
	def tick_count (self) -> int:

		"""Number of scheduling ticks covering the track."""

		return int(math.floor(self.duration / self.schedule_granularity + autoamb.constants.TIME_EPSILON))

	@property
	def chunk_count (self) -> int:

		"""Number of render chunks covering the track (the last may be short)."""

		return int(math.ceil(self.duration / self.chunk_duration - autoamb.constants.TIME_EPSILON))


@dataclasses.dataclass
class SoundscapeConfig:

	"""
	A complete run configuration.
	"""

	track: TrackConfig = dataclasses.field(default_factory=TrackConfig)
	layers: typing.Dict[str, LayerConfig] = dataclasses.field(default_factory=dict)


def _canonical (data: typing.Dict[str, typing.Any], aliases: typing.Dict[str, str]) -> typing.Dict[str, typing.Any]:

	"""
	Rename legacy keys to their snake_case spelling.
	"""

	return {aliases.get(key, key): value for key, value in data.items()}


def _parse_range (value: typing.Any, what: str) -> typing.Tuple[float, float]:

	"""
	Accept ``[lo, hi]`` or ``{min: lo, max: hi}`` and return an ordered pair.
	"""

	if isinstance(value, dict):
		if "min" not in value or "max" not in value:
			raise ConfigError(f"{what} needs 'min' and 'max'")
		lo, hi = value["min"], value["max"]

	elif isinstance(value, (list, tuple)) and len(value) == 2:
		lo, hi = value

	else:
		raise ConfigError(f"{what} must be a two-element range, got {value!r}")

	lo, hi = float(lo), float(hi)

	if hi < lo:
		raise ConfigError(f"{what} is inverted: [{lo}, {hi}]")

	return (lo, hi)


def _set_parameter (values: ParameterValues, name: str, raw: typing.Any, where: str) -> None:

	"""
	Validate and store one parameter value.
	"""

	if raw is None:
		return

	if name == "directionality":
		if raw not in DIRECTIONALITIES:
			raise ConfigError(f"{where}: directionality must be one of {DIRECTIONALITIES}, got {raw!r}")
		values.directionality = raw

	elif name == "pitch_speed_range":
		values.pitch_speed_range = _parse_range(raw, f"{where}: pitch_speed_range")
		if values.pitch_speed_range[0] <= 0:
			raise ConfigError(f"{where}: pitch_speed_range must be positive")

	else:
		number = float(raw)
		if number < 0:
			raise ConfigError(f"{where}: {name} must not be negative, got {number}")
		setattr(values, name, number)


def _split_set_key (key: str, set_names: typing.Sequence[str]) -> typing.Optional[typing.Tuple[str, str]]:

	"""
	Split a flat ``{set}_{param}`` key into (set, parameter), or ``None``.
	"""

	# Longest names first so "a_b_volume" prefers set "a_b" over set "a".
	for set_name in sorted(set_names, key=len, reverse=True):
		prefix = f"{set_name}_"
		if key.startswith(prefix):
			param = _PARAMETER_ALIASES.get(key[len(prefix):])
			if param is not None:
				return (set_name, param)

	return None


def _parse_parameter_block (
	data: typing.Dict[str, typing.Any],
	set_names: typing.Sequence[str],
	where: str,
	extra_keys: typing.Sequence[str] = ()
) -> typing.Tuple[ParameterValues, typing.Dict[str, ParameterValues]]:

	"""
	Parse generic and per-set parameter values out of a mapping.

	Per-set values may be nested under ``sets`` or spelled flat as
	``{set}_{param}``.  Keys listed in ``extra_keys`` are ignored here.
	"""

	defaults = ParameterValues()
	per_set: typing.Dict[str, ParameterValues] = {}

	for key, raw in data.items():

		if key in extra_keys:
			continue

		if key in _PARAMETER_ALIASES:
			_set_parameter(defaults, _PARAMETER_ALIASES[key], raw, where)
			continue

		split = _split_set_key(key, set_names)

		if split is None:
			raise ConfigError(f"{where}: unknown key {key!r}")

		set_name, param = split
		_set_parameter(per_set.setdefault(set_name, ParameterValues()), param, raw, f"{where} ({set_name})")

	return defaults, per_set


def _parse_nested_sets (
	raw: typing.Any,
	set_names: typing.Sequence[str],
	per_set: typing.Dict[str, ParameterValues],
	where: str
) -> None:

	"""
	Merge a nested ``{set: {param: value}}`` mapping into ``per_set``.
	"""

	if raw is None:
		return

	if not isinstance(raw, dict):
		raise ConfigError(f"{where}: per-set values must be a mapping")

	for set_name, values in raw.items():

		if set_name not in set_names:
			raise ConfigError(f"{where}: unknown set {set_name!r}")

		if not isinstance(values, dict):
			raise ConfigError(f"{where} ({set_name}): values must be a mapping")

		target = per_set.setdefault(set_name, ParameterValues())

		for key, value in values.items():
			if key not in _PARAMETER_ALIASES:
				raise ConfigError(f"{where} ({set_name}): unknown parameter {key!r}")
			_set_parameter(target, _PARAMETER_ALIASES[key], value, f"{where} ({set_name})")


def _parse_sets (name: str, raw: typing.Any) -> typing.Dict[str, str]:

	"""
	Normalise the ``sets`` entry to an ordered set-name to pattern mapping.
	"""

	if isinstance(raw, str):
		sets = {name: raw}

	elif isinstance(raw, dict):
		sets = {str(k): str(v) for k, v in raw.items()}

	else:
		raise ConfigError(f"Layer {name!r}: sets must be a pattern or a mapping of patterns")

	if not sets:
		raise ConfigError(f"Layer {name!r} defines no sets")

	for set_name, pattern in sets.items():
		try:
			re.compile(pattern)
		except re.error as exc:
			raise ConfigError(f"Layer {name!r} set {set_name!r}: invalid pattern {pattern!r}: {exc}") from exc

	return sets


def parse_layer (name: str, data: typing.Dict[str, typing.Any]) -> LayerConfig:

	"""
	Build a :class:`LayerConfig` from its configuration mapping.
	"""

	if not isinstance(data, dict):
		raise ConfigError(f"Layer {name!r} must be a mapping")

	data = _canonical(data, _LAYER_ALIASES)
	sets = _parse_sets(name, data.get("sets"))
	set_names = list(sets.keys())
	where = f"Layer {name!r}"

	defaults, set_overrides = _parse_parameter_block(data, set_names, where, extra_keys=_LAYER_FLAGS)
	_parse_nested_sets(data.get("set_overrides"), set_names, set_overrides, f"{where} set_overrides")

	raw_keyframes = data.get("intensity")

	if not isinstance(raw_keyframes, dict) or not raw_keyframes:
		raise ConfigError(f"{where} needs at least one intensity keyframe")

	keyframes: typing.List[IntensityKeyframe] = []

	for raw_level, raw_values in raw_keyframes.items():

		try:
			level = float(raw_level)
		except (TypeError, ValueError) as exc:
			raise ConfigError(f"{where}: keyframe level {raw_level!r} is not a number") from exc

		raw_values = raw_values or {}

		if not isinstance(raw_values, dict):
			raise ConfigError(f"{where} keyframe {level}: values must be a mapping")

		kf_where = f"{where} keyframe {level}"
		kf_defaults, kf_sets = _parse_parameter_block(raw_values, set_names, kf_where, extra_keys=("sets",))
		_parse_nested_sets(raw_values.get("sets"), set_names, kf_sets, kf_where)

		keyframes.append(IntensityKeyframe(level=level, defaults=kf_defaults, sets=kf_sets))

	keyframes.sort(key=lambda kf: kf.level)

	cycle_mode = data.get("cycle_mode")

	if cycle_mode in ("none", ""):
		cycle_mode = None

	if cycle_mode is not None and cycle_mode not in CYCLE_MODES:
		raise ConfigError(f"{where}: cycle_mode must be one of {CYCLE_MODES} or null, got {cycle_mode!r}")

	return LayerConfig(
		name = name,
		category = str(data.get("category", name)),
		sets = sets,
		keyframes = keyframes,
		defaults = defaults,
		set_overrides = set_overrides,
		buffer_between_sounds = bool(data.get("buffer_between_sounds", False)),
		cycle_mode = cycle_mode,
		is_constant = bool(data.get("is_constant", False)),
		constant_intensity = float(data.get("constant_intensity", 1.0)),
	)


def parse_track (data: typing.Optional[typing.Dict[str, typing.Any]]) -> TrackConfig:

	"""
	Build a :class:`TrackConfig`, applying defaults for missing keys.
	"""

	data = _canonical(data or {}, _TRACK_ALIASES)
	known = {f.name for f in dataclasses.fields(TrackConfig)}
	unknown = set(data) - known

	if unknown:
		raise ConfigError(f"Unknown track settings: {sorted(unknown)}")

	if "layer_duration_range" in data:
		data["layer_duration_range"] = _parse_range(data["layer_duration_range"], "layer_duration_range")

	track = TrackConfig(**data)

	for attr in ("duration", "chunk_duration", "schedule_granularity", "frequency_unit"):
		value = getattr(track, attr)
		if not isinstance(value, (int, float)) or value <= 0:
			raise ConfigError(f"{attr} must be a positive number, got {value!r}")
		setattr(track, attr, float(value))

	if track.max_dynamic_layers is not None and track.max_dynamic_layers < 0:
		raise ConfigError(f"max_dynamic_layers must not be negative, got {track.max_dynamic_layers}")

	if track.layer_duration_range[0] <= 0:
		raise ConfigError("layer_duration_range must be positive")

	if track.envelope_curve not in ENVELOPE_CURVES:
		raise ConfigError(f"envelope_curve must be one of {ENVELOPE_CURVES}, got {track.envelope_curve!r}")

	return track


def parse_config (data: typing.Optional[typing.Dict[str, typing.Any]]) -> SoundscapeConfig:

	"""
	Build a :class:`SoundscapeConfig` from a mapping.

	Accepts ``track`` (or the older ``config``) and ``layers`` sections.
	"""

	data = data or {}
	track = parse_track(data.get("track", data.get("config")))
	layers = {str(name): parse_layer(str(name), layer) for name, layer in (data.get("layers") or {}).items()}

	return SoundscapeConfig(track=track, layers=layers)


def load_config (config_path: str = "config.yaml") -> SoundscapeConfig:

	"""
	Load configuration from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return parse_config({})

	with open(config_path, "r") as f:
		return parse_config(yaml.safe_load(f))
