"""Force-sensor notification packets.

A packet is one response-code byte, one payload-length byte and a
payload of repeating 8-byte records: little-endian float32 value (kg)
followed by little-endian uint32 sensor time (microseconds).

Functions
---------
parse_packet
    Decode one notification packet.
split_packets
    Split a raw capture into packets.
encode_samples
    Build a measurement packet from ``(timestamp_us, value)`` pairs.
command_packet
    Single-byte control command.
samples_to_points
    Convert decoded samples to ``(ms, value)`` points.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


RESPONSE_KINDS = {
    0: "ack",
    1: "weight",
    2: "peak",
    3: "peak_series",
    4: "low_power",
}

COMMANDS = {
    "tare": 100,
    "start_weight": 101,
    "stop_weight": 102,
    "sleep": 110,
    "battery_voltage": 111,
}

RECORD_DTYPE = np.dtype([("value", "<f4"), ("timestamp", "<u4")])

# Response codes whose payload is a list of records
_RECORD_CODES = (1, 2, 3)


def parse_packet(data: bytes) -> dict:
    """Decode one sensor packet.

    Parameters
    ----------
    data : bytes
        Raw notification payload.

    Returns
    -------
    dict
        ``response_code`` (int), ``kind`` (str, ``"unknown"`` for
        unlisted codes), ``samples`` (list of ``(timestamp_us, value)``)
        and ``low_power`` (bool).

    Raises
    ------
    ValueError
        If the packet is shorter than its 2-byte header.
    """
    buf = bytes(data)
    if len(buf) < 2:
        raise ValueError(f"Packet too short: {len(buf)} byte(s), need at least 2")

    code = buf[0]
    declared = buf[1]
    payload = buf[2:]
    kind = RESPONSE_KINDS.get(code, "unknown")
    if kind == "unknown":
        logger.warning(f"Unknown response code {code}")

    samples: List[Tuple[int, float]] = []
    if code in _RECORD_CODES and payload:
        if declared < len(payload):
            if declared == 0:
                logger.warning(
                    f"Packet announces an empty payload, ignoring {len(payload)} byte(s)"
                )
            payload = payload[:declared]
        elif declared > len(payload):
            logger.warning(
                f"Truncated packet: header announces {declared} bytes, got {len(payload)}"
            )
        n_records = len(payload) // RECORD_DTYPE.itemsize
        if len(payload) % RECORD_DTYPE.itemsize:
            logger.warning(
                f"Dropping {len(payload) % RECORD_DTYPE.itemsize} trailing byte(s) "
                f"of an incomplete record"
            )
        records = np.frombuffer(payload[:n_records * RECORD_DTYPE.itemsize], dtype=RECORD_DTYPE)
        samples = [(int(r["timestamp"]), float(r["value"])) for r in records]

    return {
        "response_code": int(code),
        "kind": kind,
        "samples": samples,
        "low_power": code == 4,
    }


def split_packets(stream: bytes) -> List[bytes]:
    """Split a capture of back-to-back packets using their length bytes.

    A trailing fragment shorter than its announced length is kept as the
    last packet so :func:`parse_packet` can report it.
    """
    buf = bytes(stream)
    packets = []
    pos = 0
    while pos < len(buf):
        if pos + 2 > len(buf):
            packets.append(buf[pos:])
            break
        end = pos + 2 + buf[pos + 1]
        packets.append(buf[pos:end])
        pos = end
    return packets


def encode_samples(samples: Sequence[Tuple[int, float]], response_code: int = 1) -> bytes:
    """Build a packet carrying ``(timestamp_us, value)`` records."""
    records = np.zeros(len(samples), dtype=RECORD_DTYPE)
    for i, (ts, value) in enumerate(samples):
        records[i] = (value, ts)
    payload = records.tobytes()
    if len(payload) > 255:
        raise ValueError(f"Payload of {len(payload)} bytes exceeds the 255-byte limit")
    return bytes([response_code, len(payload)]) + payload


def command_packet(name: str) -> bytes:
    """Control-point command as a single byte."""
    if name not in COMMANDS:
        raise ValueError(f"Unknown command '{name}'. Available: {list(COMMANDS)}")
    return bytes([COMMANDS[name]])


def samples_to_points(samples: Sequence[Tuple[int, float]]) -> List[Tuple[float, float]]:
    """Convert ``(timestamp_us, value)`` samples to ``(ms, value)`` points.

    Times are relative to the first sample.
    """
    if not samples:
        return []
    t0 = samples[0][0]
    return [((ts - t0) / 1000.0, float(value)) for ts, value in samples]
