"""Volume visualization."""

from echos.visualization.plotter import VolumePlotter

__all__ = ['VolumePlotter']
