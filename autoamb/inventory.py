"""Audio asset inventory: the clips each layer's sets can play.

:func:`load_assets` scans ``<audio_dir>/<category>`` for files whose whole
name matches a set's pattern and probes each one with ``soundfile`` for
duration and channel layout.  Unreadable or zero-length files are left
out, and a set that matches nothing is kept as an empty set; both are
logged, neither is fatal.

Besides the static file list, each :class:`SetAssets` carries the
play-count and last-played bookkeeping the scheduler updates as it picks
files.
"""

import dataclasses
import logging
import os
import re
import typing

import soundfile

import autoamb.config


logger = logging.getLogger(__name__)


CHANNEL_LAYOUTS = {1: "mono", 2: "stereo", 4: "quad"}


def channel_layout (channels: int) -> str:

	"""
	Name the layout for a channel count: mono, stereo, quad or other.
	"""

	return CHANNEL_LAYOUTS.get(channels, "other")


@dataclasses.dataclass
class SetAssets:

	"""
	Valid files of one set with their durations and play bookkeeping.

	``files``, ``durations`` and ``play_counts`` are parallel lists.
	"""

	files: typing.List[str] = dataclasses.field(default_factory=list)
	durations: typing.List[float] = dataclasses.field(default_factory=list)
	play_counts: typing.List[int] = dataclasses.field(default_factory=list)
	last_played: typing.Optional[str] = None

	def __post_init__ (self) -> None:

		if len(self.files) != len(self.durations):
			raise ValueError(f"{len(self.files)} files but {len(self.durations)} durations")

		if not self.play_counts:
			self.play_counts = [0] * len(self.files)

		elif len(self.play_counts) != len(self.files):
			raise ValueError(f"{len(self.files)} files but {len(self.play_counts)} play counts")

	@property
	def is_empty (self) -> bool:

		"""True when the set has no playable file."""

		return not self.files


	def record_play (self, index: int) -> int:

		"""
		Count one play of the file at ``index`` and return its new play count.
		"""

		self.play_counts[index] += 1
		self.last_played = self.files[index]

		return self.play_counts[index]


@dataclasses.dataclass
class LayerAssets:

	"""
	All sets of one layer, plus the channel layout of every file.
	"""

	directory: str
	sets: typing.Dict[str, SetAssets] = dataclasses.field(default_factory=dict)
	channel_layouts: typing.Dict[str, str] = dataclasses.field(default_factory=dict)

	@property
	def total_files (self) -> int:

		"""Number of valid files across every set."""

		return sum(len(assets.files) for assets in self.sets.values())


	def path (self, filename: str) -> str:

		"""
		Return the full path of a file in this layer's directory.
		"""

		return os.path.join(self.directory, filename)


	def file_at (self, position: int) -> typing.Optional[typing.Tuple[str, int]]:

		"""
		Return (set name, file index) of the ``position``-th file overall.

		Files are counted set by set in configuration order; the position
		wraps around the total.  Returns ``None`` if the layer has no files.
		"""

		total = self.total_files

		if total == 0:
			return None

		position %= total

		for set_name, assets in self.sets.items():
			if position < len(assets.files):
				return (set_name, position)
			position -= len(assets.files)

		return None


	@classmethod
	def from_durations (
		cls,
		directory: str,
		durations: typing.Dict[str, typing.Dict[str, float]],
		channel_layouts: typing.Optional[typing.Dict[str, str]] = None
	) -> "LayerAssets":

		"""
		Build an inventory from known durations, dropping non-positive ones.

		Example:
			```python
			assets = LayerAssets.from_durations("sounds/drp", {"norm": {"drip_00.ogg": 1.2}})
			```
		"""

		sets: typing.Dict[str, SetAssets] = {}

		for set_name, files in durations.items():

			valid = SetAssets()

			for filename, duration in files.items():
				if duration <= 0:
					logger.warning(f"Skipping {set_name} file {filename}: invalid duration ({duration})")
					continue
				valid.files.append(filename)
				valid.durations.append(float(duration))
				valid.play_counts.append(0)

			sets[set_name] = valid

		layouts = dict(channel_layouts or {})

		for assets in sets.values():
			for filename in assets.files:
				layouts.setdefault(filename, "stereo")

		return cls(directory=directory, sets=sets, channel_layouts=layouts)


def probe (path: str) -> typing.Tuple[float, str]:

	"""
	Return (duration in seconds, channel layout) of an audio file.

	Raises ``RuntimeError`` (from ``soundfile``) if the file cannot be read.
	"""

	info = soundfile.info(path)

	if info.samplerate <= 0:
		return (0.0, channel_layout(info.channels))

	return (info.frames / info.samplerate, channel_layout(info.channels))


def load_assets (audio_dir: str, layer: autoamb.config.LayerConfig) -> LayerAssets:

	"""
	Scan a layer's directory and build its inventory.

	Sets with no matching or no valid files are kept, empty.  An unreadable
	directory leaves every set empty.
	"""

	directory = os.path.join(audio_dir, layer.category)
	assets = LayerAssets(directory=directory, sets={name: SetAssets() for name in layer.set_names})

	try:
		filenames = sorted(os.listdir(directory))

	except OSError as exc:
		logger.error(f"Error reading directory for {layer.name} ({directory}): {exc}")
		return assets

	for set_name, pattern in layer.sets.items():

		regex = re.compile(pattern)
		matches = [name for name in filenames if regex.fullmatch(name)]

		if not matches:
			logger.warning(f"No files found for {layer.name} set: {set_name} in directory {directory} with pattern {pattern}")
			continue

		valid = assets.sets[set_name]

		for filename in matches:

			try:
				duration, layout = probe(os.path.join(directory, filename))

			except (RuntimeError, OSError) as exc:
				logger.warning(f"Skipping invalid {layer.name} {set_name} audio file {filename}: {exc}")
				continue

			if duration <= 0:
				logger.warning(f"Skipping {layer.name} {set_name} audio file {filename}: invalid duration ({duration})")
				continue

			valid.files.append(filename)
			valid.durations.append(duration)
			valid.play_counts.append(0)
			assets.channel_layouts[filename] = layout

		if valid.is_empty:
			logger.warning(f"No valid files found for {layer.name} set: {set_name}")

	logger.info(f"Loaded {assets.total_files} files for layer {layer.name} from {directory}")

	return assets
