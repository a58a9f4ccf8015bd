"""Layer lifecycle: which layers are active and how intense they are.

Constant layers are active for the whole track.  Every other layer waits
in a queue (shuffled once at start) until one of ``max_dynamic_layers``
slots is free, plays for a random lifespan, then retires to the back of
the queue.  While active, a dynamic layer's intensity ramps linearly
from 0 at activation to ``MAX_INTENSITY`` at retirement.
"""

import collections
import dataclasses
import logging
import math
import typing

import autoamb.config
import autoamb.constants
import autoamb.rng


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class LayerActivation:

	"""
	When an active layer started and how long it will stay.
	"""

	activation_time: float
	lifespan: float

	@property
	def retirement (self) -> float:

		"""Time at which the layer leaves the active set."""

		return self.activation_time + self.lifespan


@dataclasses.dataclass
class DirectorUpdate:

	"""
	Layers that changed state during one tick.
	"""

	activated: typing.List[str] = dataclasses.field(default_factory=list)
	retired: typing.List[str] = dataclasses.field(default_factory=list)


class Director:

	"""
	Manages the bounded pool of concurrently active dynamic layers.
	"""

	def __init__ (
		self,
		layers: typing.Dict[str, autoamb.config.LayerConfig],
		rng: autoamb.rng.RandomSource,
		max_dynamic_layers: typing.Optional[int] = None,
		lifespan_range: typing.Tuple[float, float] = autoamb.constants.DEFAULT_LAYER_DURATION_RANGE
	) -> None:

		"""
		Activate constant layers and queue the rest in random order.

		Parameters:
			layers: Layer configurations by name.
			rng: Random source for the queue shuffle, pool size and lifespans.
			max_dynamic_layers: Slots for dynamic layers. When omitted, drawn
				once from ``DEFAULT_MAX_DYNAMIC_LAYERS_RANGE``.
			lifespan_range: (min, max) seconds a dynamic layer stays active.
		"""

		self.layers = layers
		self.rng = rng
		self.lifespan_range = lifespan_range

		if max_dynamic_layers is None:
			max_dynamic_layers = rng.randint(*autoamb.constants.DEFAULT_MAX_DYNAMIC_LAYERS_RANGE)

		self.max_dynamic_layers = max_dynamic_layers

		self._active: typing.Dict[str, LayerActivation] = {}
		queue: typing.List[str] = []

		for name, layer in layers.items():
			if layer.is_constant:
				self._active[name] = LayerActivation(activation_time=0.0, lifespan=math.inf)
			else:
				queue.append(name)

		rng.shuffle(queue)
		self._queue: typing.Deque[str] = collections.deque(queue)


	@property
	def active_layers (self) -> typing.List[str]:

		"""Names of active layers, in activation order."""

		return list(self._active.keys())

	@property
	def queue (self) -> typing.List[str]:

		"""Names of inactive dynamic layers, next to activate first."""

		return list(self._queue)

	@property
	def dynamic_count (self) -> int:

		"""Number of active non-constant layers."""

		return sum(1 for name in self._active if not self.layers[name].is_constant)


	def activation (self, name: str) -> typing.Optional[LayerActivation]:

		"""
		Return the activation record of an active layer, or ``None``.
		"""

		return self._active.get(name)


	def is_active (self, name: str) -> bool:

		"""
		Return True if the layer is currently active.
		"""

		return name in self._active


	def update (self, time: float) -> DirectorUpdate:

		"""
		Retire expired layers, then fill free slots from the queue.
		"""

		result = DirectorUpdate()

		for name, state in list(self._active.items()):

			if self.layers[name].is_constant:
				continue

			if time >= state.retirement:
				del self._active[name]
				self._queue.append(name)
				result.retired.append(name)
				logger.info(f"Layer {name} retired at {time:.1f}s")

		while self.dynamic_count < self.max_dynamic_layers and self._queue:

			name = self._queue.popleft()
			lifespan = self.rng.uniform(*self.lifespan_range)
			self._active[name] = LayerActivation(activation_time=time, lifespan=lifespan)
			result.activated.append(name)
			logger.info(f"Layer {name} active at {time:.1f}s for {lifespan:.1f}s")

		return result


	def intensity (self, name: str, time: float) -> float:

		"""
		Return a layer's intensity at ``time``.

		Inactive layers report 0 and constant layers their configured
		intensity.  Dynamic layers ramp from 0 to ``MAX_INTENSITY`` over
		their lifespan, measured from the current activation.
		"""

		state = self._active.get(name)

		if state is None:
			return 0.0

		layer = self.layers[name]

		if layer.is_constant:
			return layer.constant_intensity

		if state.lifespan <= 0:
			return autoamb.constants.MAX_INTENSITY

		progress = max(0.0, min(1.0, (time - state.activation_time) / state.lifespan))

		return min(autoamb.constants.MAX_INTENSITY, autoamb.constants.MAX_INTENSITY * progress)
