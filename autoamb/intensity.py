"""Intensity curve evaluation.

Maps a layer's current intensity to concrete per-set parameters by
interpolating between the two keyframes that bracket it.  Each keyframe
value is resolved through four tiers, most specific first:

1. the keyframe's value for this set
2. the keyframe's generic value
3. the layer's value for this set
4. the layer's generic value

Numeric parameters (volume, frequency, variance) are interpolated
linearly.  Non-numeric parameters (directionality, pitch/speed range)
take the lower keyframe's value, or the upper one's when the lower
leaves it undefined.
"""

import bisect
import dataclasses
import typing

import autoamb.config


NUMERIC_PARAMETERS = ("volume", "frequency", "variance")

# Used when no tier defines a parameter at all.
FALLBACKS: typing.Dict[str, typing.Any] = {
	"volume": 1.0,
	"frequency": 0.0,
	"variance": 0.0,
	"directionality": "none",
	"pitch_speed_range": None,
}


@dataclasses.dataclass
class Bracket:

	"""
	The keyframes surrounding an intensity value and the weight between them.
	"""

	lower: autoamb.config.IntensityKeyframe
	upper: autoamb.config.IntensityKeyframe
	weight: float


@dataclasses.dataclass
class SetParameters:

	"""
	Interpolated parameters for one set at one intensity.
	"""

	volume: float
	frequency: float
	variance: float
	directionality: str
	pitch_speed_range: typing.Optional[typing.Tuple[float, float]]


def find_bracket (keyframes: typing.Sequence[autoamb.config.IntensityKeyframe], intensity: float) -> Bracket:

	"""
	Find the keyframes bracketing ``intensity``.

	The lower keyframe is the last one at or below the intensity (the first
	keyframe when the intensity is below them all).  The upper keyframe is
	the first one strictly above it (the lower keyframe when there is none).
	The weight is 0 when both are the same keyframe.
	"""

	if not keyframes:
		raise ValueError("At least one keyframe is required")

	levels = [kf.level for kf in keyframes]
	above = bisect.bisect_right(levels, intensity)

	lower = keyframes[above - 1] if above > 0 else keyframes[0]
	upper = keyframes[above] if above < len(keyframes) else lower

	if upper.level == lower.level:
		return Bracket(lower=lower, upper=upper, weight=0.0)

	return Bracket(lower=lower, upper=upper, weight=(intensity - lower.level) / (upper.level - lower.level))


def resolve (
	layer: autoamb.config.LayerConfig,
	keyframe: autoamb.config.IntensityKeyframe,
	set_name: str,
	param: str
) -> typing.Any:

	"""
	Resolve one parameter at one keyframe through the four tiers.

	Returns ``None`` when no tier defines it.
	"""

	tiers = (
		keyframe.sets.get(set_name),
		keyframe.defaults,
		layer.set_overrides.get(set_name),
		layer.defaults,
	)

	for values in tiers:
		if values is None:
			continue
		value = values.get(param)
		if value is not None:
			return value

	return None


def interpolate (layer: autoamb.config.LayerConfig, bracket: Bracket, set_name: str, param: str) -> typing.Any:

	"""
	Interpolate one parameter for one set within a bracket.
	"""

	lower = resolve(layer, bracket.lower, set_name, param)
	upper = resolve(layer, bracket.upper, set_name, param)

	if param in NUMERIC_PARAMETERS:

		if lower is None and upper is None:
			return FALLBACKS[param]

		# A value defined on only one side holds across the bracket.
		if lower is None:
			lower = upper
		elif upper is None:
			upper = lower

		return (1.0 - bracket.weight) * lower + bracket.weight * upper

	if lower is not None:
		return lower

	if upper is not None:
		return upper

	return FALLBACKS[param]


def evaluate_set (layer: autoamb.config.LayerConfig, intensity: float, set_name: str) -> SetParameters:

	"""
	Evaluate every parameter for one set at the given intensity.
	"""

	bracket = find_bracket(layer.keyframes, intensity)

	return SetParameters(**{param: interpolate(layer, bracket, set_name, param) for param in autoamb.config.PARAMETER_NAMES})


def evaluate (layer: autoamb.config.LayerConfig, intensity: float) -> typing.Dict[str, SetParameters]:

	"""
	Evaluate parameters for every set of a layer at the given intensity.
	"""

	bracket = find_bracket(layer.keyframes, intensity)

	return {
		set_name: SetParameters(**{param: interpolate(layer, bracket, set_name, param) for param in autoamb.config.PARAMETER_NAMES})
		for set_name in layer.set_names
	}
