"""Volume and session file formats."""

from echos.formats.nrrd import encode_nrrd, decode_nrrd, write_nrrd, read_nrrd
from echos.formats.session import (
    EchosSession,
    create_session,
    serialize_session,
    deserialize_session,
    save_session,
    load_session,
)
from echos.formats.snapshot import serialize_volume, deserialize_volume, save_snapshot, load_snapshot

__all__ = [
    'encode_nrrd',
    'decode_nrrd',
    'write_nrrd',
    'read_nrrd',
    'EchosSession',
    'create_session',
    'serialize_session',
    'deserialize_session',
    'save_session',
    'load_session',
    'serialize_volume',
    'deserialize_volume',
    'save_snapshot',
    'load_snapshot',
]
