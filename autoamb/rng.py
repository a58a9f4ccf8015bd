"""Random source used by every stochastic decision in a run.

All draws (director shuffle and lifespans, jitter, Poisson counts, file
choice, spatial positions, pitch) go through one injected object, so a
seeded :class:`SoundscapeRandom` makes an entire schedule repeatable.
Anything satisfying :class:`RandomSource` can be substituted, e.g. a
scripted stub in tests.
"""

import random
import typing

import numpy


@typing.runtime_checkable
class RandomSource (typing.Protocol):

	"""
	The draws the scheduler needs from a random number generator.
	"""

	def random (self) -> float:
		...

	def uniform (self, a: float, b: float) -> float:
		...

	def normal (self, mean: float = 0.0, sigma: float = 1.0) -> float:
		...

	def poisson (self, lam: float) -> int:
		...

	def randint (self, a: int, b: int) -> int:
		...

	def shuffle (self, items: typing.MutableSequence[typing.Any]) -> None:
		...


class SoundscapeRandom (random.Random):

	"""
	A ``random.Random`` with the extra draws used by the scheduler.

	Poisson counts come from a ``numpy.random.Generator`` seeded alongside
	the standard generator, so one seed fixes both streams.
	"""

	def seed (self, a: typing.Any = None, version: int = 2) -> None:

		"""
		Reseed both the standard generator and the numpy generator.
		"""

		super().seed(a, version)
		self.np_rng = numpy.random.default_rng(abs(a) if isinstance(a, int) else None)


	def normal (self, mean: float = 0.0, sigma: float = 1.0) -> float:

		"""
		Draw from a normal distribution.
		"""

		return self.gauss(mean, sigma)


	def poisson (self, lam: float) -> int:

		"""
		Draw a Poisson-distributed count with mean ``lam``.  Non-positive means return 0.
		"""

		if lam <= 0:
			return 0

		return int(self.np_rng.poisson(lam))


def gaussian_clamp (rng: RandomSource, mean: float, sigma: float) -> float:

	"""
	Clamped Gaussian draw that works with any :class:`RandomSource`.
	"""

	return min(1.0, max(0.0, rng.normal(mean, sigma)))


def make_random (seed: typing.Optional[int] = None) -> SoundscapeRandom:

	"""
	Create a random source, seeded when ``seed`` is given.
	"""

	return SoundscapeRandom(seed)
