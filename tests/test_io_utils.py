import struct

import pytest

from kpukit.io_utils import load_paddle_tensor, read_file


def _tensor_file(payload, lods=(), version=0, desc=b"\x08\x05"):
    parts = [struct.pack("<I", 0), struct.pack("<Q", len(lods))]
    for lod in lods:
        parts.append(struct.pack("<Q", len(lod)))
        parts.append(lod)
    parts.append(struct.pack("<I", version))
    parts.append(struct.pack("<I", len(desc)))
    parts.append(desc)
    parts.append(payload)
    return b"".join(parts)


def test_read_file_round_trip(tmp_path):
    data = bytes(range(256)) * 3
    path = tmp_path / "blob.bin"
    path.write_bytes(data)
    assert read_file(path) == data


def test_read_file_missing(tmp_path):
    missing = tmp_path / "nope.bin"
    with pytest.raises(OSError, match="Cannot open file"):
        read_file(missing)


def test_load_tensor_returns_payload(tmp_path):
    payload = struct.pack("<4f", 1.0, 2.0, 3.0, 4.0)
    (tmp_path / "conv_w").write_bytes(_tensor_file(payload))
    assert load_paddle_tensor(tmp_path, "conv_w", len(payload)) == payload


def test_load_tensor_skips_lod_tables(tmp_path):
    payload = b"\x01\x02\x03\x04\x05\x06\x07\x08"
    content = _tensor_file(payload, lods=(b"abc", b"defghij"))
    (tmp_path / "w").write_bytes(content)
    assert load_paddle_tensor(tmp_path, "w", len(payload)) == payload


def test_load_tensor_size_mismatch(tmp_path):
    payload = b"\x00" * 8
    (tmp_path / "w").write_bytes(_tensor_file(payload))
    with pytest.raises(ValueError, match="Unexpected tensor data size"):
        load_paddle_tensor(tmp_path, "w", len(payload) + 4)


def test_load_tensor_bad_version(tmp_path):
    payload = b"\x00" * 4
    (tmp_path / "w").write_bytes(_tensor_file(payload, version=1))
    with pytest.raises(ValueError, match="Unsupported tensor data version"):
        load_paddle_tensor(tmp_path, "w", len(payload))


def test_load_tensor_truncated(tmp_path):
    (tmp_path / "w").write_bytes(struct.pack("<I", 0))
    with pytest.raises(ValueError):
        load_paddle_tensor(tmp_path, "w", 0)


def test_load_tensor_missing_file(tmp_path):
    with pytest.raises(OSError, match="Cannot open file"):
        load_paddle_tensor(tmp_path, "absent", 4)