import collections
import logging
import os
import sys

import autoamb

logging.basicConfig(level=logging.WARNING)

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "station.yaml")

config = autoamb.load_config(sys.argv[1] if len(sys.argv) > 1 else CONFIG_PATH)

# Scheduling only: no audio is decoded or written.
soundscape = autoamb.Soundscape(config)
plan = soundscape.plan()

print(f"{len(plan.events)} events over {config.track.duration:.0f}s in {len(plan.chunks)} chunks")

for chunk, counts in zip(plan.chunks, plan.chunk_counts):
	carried = len(chunk.events) - len(chunk.fresh_events)
	layers = ", ".join(f"{layer} {count}" for layer, count in sorted(counts.items()))
	print(f"  {chunk.start:6.1f}s  {layers or '-'}  (+{carried} carried over)")

per_file = collections.Counter(event.filename for event in plan.events)

print("Most played clips:")

for filename, count in per_file.most_common(5):
	print(f"  {count:4d}  {filename}")

soundscape.write_logs(plan)
