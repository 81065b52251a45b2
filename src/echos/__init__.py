"""`echos` - sonar echo volumes from screen-captured sonar video and a GPS track.

Subpackages:
- gps: Track enrichment and frame-to-track synchronization
- sonar: Frame preprocessing, volume accumulation, statistics, QC
- formats: NRRD, session and snapshot files
- pipeline: Coordinator, producer, orchestrator
- visualization: Plotting
"""

__version__ = "0.1.0"
