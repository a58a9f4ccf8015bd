
"""
AutoAmb - a generative ambient soundscape builder.

AutoAmb assembles long ambient tracks from libraries of short recorded
clips: drips, breaths, pipe knocks, air vents, distant machinery.  Sounds
are grouped into layers, each layer into sets of interchangeable files,
and a director decides which layers play when so the track drifts and
never settles into a loop.

How a track comes together:

- **Layers with intensity curves.** Each layer maps an intensity (0 to 2)
  to volume, rate, variance, stereo placement and pitch through keyframes.
  Values can be given per set or for the whole layer, at a keyframe or as
  a layer default; the most specific one wins.
- **A director with a bounded pool.** Only a few dynamic layers play at
  once.  Each stays for a random lifespan while its intensity ramps up,
  then retires to the back of the queue.  Constant layers (room tone,
  background hum) play throughout.
- **Three timing policies.** Gapless chains for continuous sounds like
  breathing, a fixed grid for metronomic ones, Poisson jitter for
  scattered ones like drips.
- **Clip choice that avoids repetition.** Files are weighted towards the
  least played, and never repeat back to back while an alternative exists.
  Layers can also rotate through sets or walk through every file in order.
- **Chunked rendering.** The schedule is split into fixed-length chunks;
  clips crossing a boundary continue seamlessly in the next chunk.
- **Deterministic runs.** Every random decision comes from one seedable
  source, so the same seed and configuration give the same track.

Minimal example:

	```python
	import autoamb

	soundscape = autoamb.Soundscape(autoamb.load_config("station.yaml"))
	soundscape.render()
	```

Or from the command line: ``python -m autoamb station.yaml``.

Package-level exports: ``Soundscape``, ``load_config``, ``parse_config``,
``ConfigError``, ``RenderError``.
"""

import autoamb.config
import autoamb.render
import autoamb.soundscape


Soundscape = autoamb.soundscape.Soundscape
load_config = autoamb.config.load_config
parse_config = autoamb.config.parse_config
ConfigError = autoamb.config.ConfigError
RenderError = autoamb.render.RenderError
