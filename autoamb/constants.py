"""Scheduling and rendering constants.

Intensity runs from 0 (a freshly activated layer) to ``MAX_INTENSITY``
(a layer at the end of its lifespan).  Keyframes in layer configuration
are expressed on the same scale.

Spatial positions use two clamped Gaussians:
- pan magnitude around ``PAN_MEAN`` with a random sign, so events sit off-centre
  to the left or right rather than clustering in the middle
- distance attenuation around ``DISTANCE_MEAN`` (1.0 = full level)
"""

MAX_INTENSITY = 2.0

PAN_MEAN = 0.5
PAN_SIGMA = 0.25
DISTANCE_MEAN = 0.75
DISTANCE_SIGMA = 0.25

# Random lifespan of a dynamic layer when the configuration gives no range (seconds).
DEFAULT_LAYER_DURATION_RANGE = (150.0, 300.0)

# Pool size is drawn from this range once per run when not configured.
DEFAULT_MAX_DYNAMIC_LAYERS_RANGE = (2, 4)

# Shared chain key used when a layer rotates through its sets or files.
CYCLE_KEY = "_layerCycle"

DEFAULT_SAMPLE_RATE = 44100

# Absorbs float error when counting ticks (e.g. 0.3 / 0.1 == 2.9999999999999996).
TIME_EPSILON = 1e-9
