"""Volume containers.

A finalized volume is an ``xarray.Dataset`` with a single float32
``intensity`` variable on ``("track", "depth", "lateral")`` and metric
coordinates. Flattening the array in C order gives the on-disk layout:
lateral (X) fastest, then depth (Y), then track (Z).

Dataset attrs
-------------
dimensions : (int, int, int)
    Voxel counts (lateral, depth, track).
extent : (float, float, float)
    Physical size in meters, same order.
spacing : (float, float, float)
    Voxel size in meters, ``extent / dimensions``.
origin : (float, float, float)
    Position of voxel (0, 0, 0) in meters.
view_mode : str
    Accumulation strategy that produced the volume.
total_distance_m, depth_max_m, source_frame_count, resampled_slice_count
    Provenance carried into session files and QC reports.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import xarray as xr

from echos.core.types import VOLUME_DIMS

__all__ = ['ProbabilisticVolume', 'make_volume_dataset', 'volume_metadata', 'flat_data']


@dataclass
class ProbabilisticVolume:
    """Weighted accumulation buffers for the conic projection.

    ``data`` holds the sum of ``intensity * weight`` and ``weights`` the sum
    of weights per voxel, both float64 with shape (track, depth, lateral).
    """
    data: np.ndarray
    weights: np.ndarray
    dimensions: tuple
    extent: tuple
    origin: tuple

    @classmethod
    def empty(cls, dimensions: Sequence[int], extent: Sequence[float],
              origin: Sequence[float]) -> "ProbabilisticVolume":
        dim_x, dim_y, dim_z = (int(d) for d in dimensions)
        shape = (dim_z, dim_y, dim_x)
        return cls(
            data=np.zeros(shape, dtype=np.float64),
            weights=np.zeros(shape, dtype=np.float64),
            dimensions=(dim_x, dim_y, dim_z),
            extent=tuple(float(e) for e in extent),
            origin=tuple(float(o) for o in origin),
        )

    @property
    def size(self) -> int:
        return int(self.data.size)

    def release(self) -> None:
        """Drop the buffers once the finalized volume has been handed off."""
        self.data = np.zeros((0, 0, 0), dtype=np.float64)
        self.weights = np.zeros((0, 0, 0), dtype=np.float64)


def make_volume_dataset(
    data: np.ndarray,
    extent: Sequence[float],
    origin: Sequence[float] = (0.0, 0.0, 0.0),
    view_mode: str = "spatial",
    total_distance_m: float = 0.0,
    depth_max_m: float = 0.0,
    source_frame_count: int = 0,
    resampled_slice_count: Optional[int] = None,
    spacing: Optional[Sequence[float]] = None,
) -> xr.Dataset:
    """Wrap a (track, depth, lateral) array as a volume Dataset.

    ``spacing`` defaults to ``extent / dimensions``; pass it explicitly to keep
    a stored value bit-for-bit.
    """
    data = np.ascontiguousarray(data, dtype=np.float32)
    dim_z, dim_y, dim_x = data.shape
    dimensions = (dim_x, dim_y, dim_z)
    extent = tuple(float(e) for e in extent)
    origin = tuple(float(o) for o in origin)
    if spacing is None:
        spacing = tuple(e / d if d > 0 else 0.0 for e, d in zip(extent, dimensions))
    spacing = tuple(float(s) for s in spacing)

    coords = {
        "lateral": ("lateral", origin[0] + np.arange(dim_x) * spacing[0], {"units": "m"}),
        "depth": ("depth", origin[1] + np.arange(dim_y) * spacing[1], {"units": "m"}),
        "track": ("track", origin[2] + np.arange(dim_z) * spacing[2], {"units": "m"}),
    }
    attrs = {
        "dimensions": dimensions,
        "extent": extent,
        "spacing": spacing,
        "origin": origin,
        "view_mode": view_mode,
        "total_distance_m": float(total_distance_m),
        "depth_max_m": float(depth_max_m),
        "source_frame_count": int(source_frame_count),
        "resampled_slice_count": int(dim_z if resampled_slice_count is None else resampled_slice_count),
    }

    intensity = xr.DataArray(
        data,
        dims=VOLUME_DIMS,
        coords=coords,
        attrs={"long_name": "Normalized echo intensity", "units": "1"},
    )
    return xr.Dataset({"intensity": intensity}, attrs=attrs)


def volume_metadata(volume: xr.Dataset) -> dict:
    """Provenance fields of a volume as plain Python values."""
    attrs = volume.attrs
    return {
        "dimensions": [int(d) for d in attrs["dimensions"]],
        "spacing": [float(s) for s in attrs["spacing"]],
        "origin": [float(o) for o in attrs["origin"]],
        "total_distance_m": float(attrs["total_distance_m"]),
        "depth_max_m": float(attrs["depth_max_m"]),
        "source_frame_count": int(attrs["source_frame_count"]),
        "resampled_slice_count": int(attrs["resampled_slice_count"]),
    }


def flat_data(volume: xr.Dataset) -> np.ndarray:
    """Voxels as a 1D float32 array, lateral fastest."""
    return np.ascontiguousarray(volume["intensity"].values, dtype=np.float32).ravel()
