"""NRRD volume export and import.

Files carry an ASCII header (NRRD0004, float, 3 dimensions, raw little-endian
encoding) followed by the voxels as little-endian float32 with lateral (X)
fastest, then depth (Y), then track (Z). Provenance travels as NRRD
``key:=value`` pairs, so reading a file back restores the same Dataset.

Format reference: http://teem.sourceforge.net/nrrd/format.html
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np
import xarray as xr

from echos.contracts import FormatError
from echos.sonar.volume import flat_data, make_volume_dataset

__all__ = ['encode_nrrd', 'decode_nrrd', 'write_nrrd', 'read_nrrd']

logger = logging.getLogger(__name__)

MAGIC = "NRRD0004"
KEY_PREFIX = "echos_"
METADATA_KEYS = ("view_mode", "total_distance_m", "depth_max_m",
                 "source_frame_count", "resampled_slice_count")


def _fmt_vector(values) -> str:
    return "(" + ",".join(repr(float(v)) for v in values) + ")"


def encode_nrrd(volume: xr.Dataset) -> bytes:
    """Serialize a volume Dataset as NRRD bytes."""
    attrs = volume.attrs
    dim_x, dim_y, dim_z = attrs["dimensions"]
    spacing = attrs["spacing"]

    lines = [
        MAGIC,
        "type: float",
        "dimension: 3",
        f"sizes: {dim_x} {dim_y} {dim_z}",
        "spacings: " + " ".join(repr(float(s)) for s in spacing),
        "encoding: raw",
        "endian: little",
        f"space origin: {_fmt_vector(attrs['origin'])}",
        "space directions: (1,0,0) (0,1,0) (0,0,1)",
        f"# ECHOS volume - axes: lateral depth track, depth_max={attrs['depth_max_m']}m, "
        f"distance={attrs['total_distance_m']:.1f}m",
        f"# frames={attrs['source_frame_count']}, slices={attrs['resampled_slice_count']}",
    ]
    for key in METADATA_KEYS:
        lines.append(f"{KEY_PREFIX}{key}:={attrs[key]}")
    header = "\n".join(lines) + "\n\n"

    payload = flat_data(volume).astype("<f4", copy=False).tobytes()
    return header.encode("ascii") + payload


def _parse_vector(text: str, field: str) -> tuple:
    try:
        return tuple(float(v) for v in text.strip().strip("()").split(","))
    except ValueError:
        raise FormatError(f"Invalid NRRD '{field}': {text!r}") from None


def decode_nrrd(buffer: bytes) -> xr.Dataset:
    """Parse NRRD bytes written by :func:`encode_nrrd`.

    Raises
    ------
    FormatError
        If the magic line, a required field, or the payload size is wrong.
    """
    separator = buffer.find(b"\n\n")
    if separator < 0:
        raise FormatError("Invalid NRRD file: header is not terminated by a blank line")

    try:
        header_lines = buffer[:separator].decode("ascii").split("\n")
    except UnicodeDecodeError:
        raise FormatError("Invalid NRRD file: header is not ASCII") from None

    if not header_lines[0].startswith("NRRD000"):
        raise FormatError(f"Invalid NRRD file: bad magic {header_lines[0][:16]!r}")

    fields = {}
    keyvalues = {}
    for line in header_lines[1:]:
        if not line or line.startswith("#"):
            continue
        if ":=" in line:
            key, value = line.split(":=", 1)
            keyvalues[key.strip()] = value.strip()
        elif ": " in line:
            key, value = line.split(": ", 1)
            fields[key.strip()] = value.strip()
        else:
            raise FormatError(f"Invalid NRRD header line: {line!r}")

    for field in ("type", "dimension", "sizes", "encoding"):
        if field not in fields:
            raise FormatError(f"Invalid NRRD file: missing '{field}' field")
    if fields["type"] not in ("float", "float32"):
        raise FormatError(f"Unsupported NRRD 'type': {fields['type']}")
    if fields["encoding"] != "raw":
        raise FormatError(f"Unsupported NRRD 'encoding': {fields['encoding']}")
    if fields.get("endian", "little") != "little":
        raise FormatError(f"Unsupported NRRD 'endian': {fields['endian']}")
    if fields["dimension"] != "3":
        raise FormatError(f"Unsupported NRRD 'dimension': {fields['dimension']}")

    try:
        dim_x, dim_y, dim_z = (int(s) for s in fields["sizes"].split())
    except ValueError:
        raise FormatError(f"Invalid NRRD 'sizes': {fields['sizes']!r}") from None

    spacing = (1.0, 1.0, 1.0)
    if "spacings" in fields:
        try:
            spacing = tuple(float(s) for s in fields["spacings"].split())
        except ValueError:
            raise FormatError(f"Invalid NRRD 'spacings': {fields['spacings']!r}") from None
        if len(spacing) != 3:
            raise FormatError(f"Invalid NRRD 'spacings': expected 3 values, got {len(spacing)}")

    origin = (0.0, 0.0, 0.0)
    if "space origin" in fields:
        origin = _parse_vector(fields["space origin"], "space origin")

    expected = dim_x * dim_y * dim_z * 4
    payload = buffer[separator + 2:]
    if len(payload) != expected:
        raise FormatError(f"Invalid NRRD payload: expected {expected} bytes, got {len(payload)}")

    data = np.frombuffer(payload, dtype="<f4").astype(np.float32).reshape(dim_z, dim_y, dim_x)

    meta = {key[len(KEY_PREFIX):]: value for key, value in keyvalues.items()
            if key.startswith(KEY_PREFIX)}
    try:
        return make_volume_dataset(
            data,
            extent=(dim_x * spacing[0], dim_y * spacing[1], dim_z * spacing[2]),
            origin=origin,
            view_mode=meta.get("view_mode", "spatial"),
            total_distance_m=float(meta.get("total_distance_m", 0.0)),
            depth_max_m=float(meta.get("depth_max_m", dim_y * spacing[1])),
            source_frame_count=int(meta.get("source_frame_count", 0)),
            resampled_slice_count=int(meta.get("resampled_slice_count", dim_z)),
            spacing=spacing,
        )
    except ValueError as e:
        raise FormatError(f"Invalid NRRD metadata: {e}") from None


def write_nrrd(volume: xr.Dataset, path: Union[str, Path]) -> Path:
    """Write a volume to ``path`` as NRRD."""
    path = Path(path)
    path.write_bytes(encode_nrrd(volume))
    logger.info("NRRD saved: %s (%s)", path, "x".join(str(d) for d in volume.attrs["dimensions"]))
    return path


def read_nrrd(path: Union[str, Path]) -> xr.Dataset:
    """Load a volume written by :func:`write_nrrd`."""
    return decode_nrrd(Path(path).read_bytes())
