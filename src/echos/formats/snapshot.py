"""Volume snapshots (``.echos-vol``).

A compact binary dump of a finalized volume so it can be reloaded without
rerunning the pipeline. Layout (all little-endian)::

    bytes  0-3   magic "EVOL" (uint32 0x4C4F5645)
    bytes  4-7   version (uint32, currently 1)
    bytes  8-19  dimensions, uint32 x 3 (lateral, depth, track)
    bytes 20-31  extent in meters, float32 x 3
    bytes 32-39  reserved, zero
    bytes 40-    float32 voxels, lateral fastest

The origin is not stored; spatial volumes are reloaded with the lateral axis
centred on the beam, instrument volumes at zero.
"""

import logging
import struct
from pathlib import Path
from typing import Union

import numpy as np
import xarray as xr

from echos.contracts import FormatError
from echos.core.types import ViewMode
from echos.sonar.volume import flat_data, make_volume_dataset

__all__ = [
    'SNAPSHOT_MAGIC',
    'SNAPSHOT_VERSION',
    'SNAPSHOT_SUFFIX',
    'serialize_volume',
    'deserialize_volume',
    'save_snapshot',
    'load_snapshot',
]

logger = logging.getLogger(__name__)

SNAPSHOT_MAGIC = 0x4C4F5645
SNAPSHOT_VERSION = 1
SNAPSHOT_SUFFIX = ".echos-vol"
HEADER = struct.Struct("<5I3f8x")


def serialize_volume(volume: xr.Dataset) -> bytes:
    """Pack a volume into snapshot bytes."""
    dim_x, dim_y, dim_z = (int(d) for d in volume.attrs["dimensions"])
    ext_x, ext_y, ext_z = (float(e) for e in volume.attrs["extent"])
    header = HEADER.pack(SNAPSHOT_MAGIC, SNAPSHOT_VERSION, dim_x, dim_y, dim_z, ext_x, ext_y, ext_z)
    return header + flat_data(volume).astype("<f4", copy=False).tobytes()


def deserialize_volume(buffer: bytes, view_mode: str = ViewMode.SPATIAL.value) -> xr.Dataset:
    """Unpack snapshot bytes into a volume Dataset.

    Raises
    ------
    FormatError
        If the buffer is shorter than the header, has the wrong magic, a
        newer version, or fewer voxel bytes than its dimensions require.
    """
    if len(buffer) < HEADER.size:
        raise FormatError("Invalid .echos-vol file: too small")

    magic, version, dim_x, dim_y, dim_z, ext_x, ext_y, ext_z = HEADER.unpack_from(buffer)
    if magic != SNAPSHOT_MAGIC:
        raise FormatError("Invalid .echos-vol file: bad magic number")
    if version > SNAPSHOT_VERSION:
        raise FormatError(
            f"Unsupported .echos-vol version: {version} (max supported: {SNAPSHOT_VERSION})"
        )

    count = dim_x * dim_y * dim_z
    expected = HEADER.size + count * 4
    if len(buffer) < expected:
        raise FormatError(f"Invalid .echos-vol file: expected {expected} bytes, got {len(buffer)}")

    data = np.frombuffer(buffer, dtype="<f4", count=count, offset=HEADER.size)
    data = data.astype(np.float32).reshape(dim_z, dim_y, dim_x)

    origin_x = -ext_x / 2 if view_mode == ViewMode.SPATIAL.value else 0.0
    return make_volume_dataset(
        data,
        extent=(ext_x, ext_y, ext_z),
        origin=(origin_x, 0.0, 0.0),
        view_mode=view_mode,
        depth_max_m=ext_y,
    )


def save_snapshot(volume: xr.Dataset, path: Union[str, Path]) -> Path:
    """Write a ``.echos-vol`` file."""
    path = Path(path)
    path.write_bytes(serialize_volume(volume))
    logger.info("Snapshot saved: %s", path)
    return path


def load_snapshot(path: Union[str, Path], view_mode: str = ViewMode.SPATIAL.value) -> xr.Dataset:
    """Read a ``.echos-vol`` file."""
    return deserialize_volume(Path(path).read_bytes(), view_mode=view_mode)
