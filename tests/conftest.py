"""Shared test fixtures for myomotion test suite.

Provides synthetic signal builders (force streams, sway acceleration,
motion samples, jump trajectories, sensor captures) used across all
test modules.
"""

import numpy as np
import pytest


def make_sine_force(n=500, fs=100.0, freq=1.0, offset=5.0, amplitude=3.0):
    """Force stream ``offset + amplitude * sin(2 pi f t)`` as (ms, kg) points."""
    t = np.arange(n) / fs
    y = offset + amplitude * np.sin(2 * np.pi * freq * t)
    return [(i * 1000.0 / fs, float(v)) for i, v in enumerate(y)]


def make_square_force(half_periods=10, samples_per_half=50, lead=50,
                      high=8.0, low=2.0, rest=5.0, dt_ms=10.0):
    """Square wave preceded by a rest level, as (ms, kg) points."""
    values = [rest] * lead
    for k in range(half_periods):
        values.extend([high if k % 2 == 0 else low] * samples_per_half)
    return [(i * dt_ms, v) for i, v in enumerate(values)]


def make_baseline_sine(n=500, dt_ms=10.0, amplitude=5.0, period_ms=1000.0):
    """Zero-mean sine crossing the baseline between samples."""
    t = np.arange(n) * dt_ms
    y = amplitude * np.sin(2 * np.pi * (t + dt_ms / 2) / period_ms)
    return [(float(x), float(v)) for x, v in zip(t, y)]


def make_ramp_force(rise_start=500.0, rise_end=1000.0, top=10.0, end=1500.0, dt_ms=10.0):
    """Flat, linear rise, flat force trace."""
    t = np.arange(0, end + dt_ms / 2, dt_ms)
    y = np.interp(t, [0, rise_start, rise_end, end], [0, 0, top, top])
    return [(float(x), float(v)) for x, v in zip(t, y)]


def make_cycles(amplitudes, duration=1000.0):
    """Completed cycle dicts with the given amplitudes."""
    cycles = []
    for i, amp in enumerate(amplitudes):
        start = i * duration
        cycles.append({
            "start_x": start,
            "end_x": start + duration,
            "peak_x": start + duration / 2,
            "peak_y": amp,
            "min_x": start,
            "min_y": 0.0,
            "amplitude": amp,
            "duration": duration,
        })
    return cycles


def make_motion_samples(n=2000, interval_ms=10.0, ml_amplitude=0.0, ml_freq=0.5,
                        gravity=9.81):
    """Device-motion samples of a sensor held with gravity on +x."""
    samples = []
    for i in range(n):
        t = i * interval_ms
        ml = ml_amplitude * np.sin(2 * np.pi * ml_freq * t / 1000.0)
        samples.append({
            "timestamp": t,
            "interval_ms": interval_ms,
            "acceleration": {"x": 0.0, "y": float(ml), "z": 0.0},
            "acceleration_including_gravity": {"x": gravity, "y": float(ml), "z": 0.0},
        })
    return samples


def make_sway(n=1000, fs=100.0, ml_freq=0.5, ap_freq=0.3, ml_amp=0.2, ap_amp=0.1):
    """ML/AP acceleration of a gentle two-frequency sway."""
    t = np.arange(n) / fs
    ml = ml_amp * np.sin(2 * np.pi * ml_freq * t)
    ap = ap_amp * np.sin(2 * np.pi * ap_freq * t)
    return ml, ap


# Knee flexion and joint height of one countermovement jump at 100 fps:
# takeoff at frame 45, landing at frame 81, apex at frame 63.
JUMP_BLOCK = 121
_ANGLE_KEYS = ([0, 20, 40, 45, 81, 86, 106, 120], [10, 10, 90, 5, 5, 70, 10, 10])
_Y_KEYS = ([0, 20, 40, 45, 81, 90, 110, 120], [500, 500, 540, 500, 500, 530, 500, 500])


def _jump_block():
    idx = np.arange(JUMP_BLOCK)
    angle = np.interp(idx, *_ANGLE_KEYS)
    y = np.interp(idx, *_Y_KEYS)
    flight = (idx > 45) & (idx < 81)
    s = (idx[flight] - 45) / 36.0
    y[flight] = 500 - 400 * s * (1 - s)
    return angle, y


def make_jump_frames(n_jumps=1, dt_ms=10.0):
    """Jump frames (``timestamp``, ``angle``, ``y``) for consecutive jumps."""
    angle, y = _jump_block()
    frames = []
    for k in range(n_jumps):
        for i in range(JUMP_BLOCK):
            frames.append({
                "timestamp": (k * JUMP_BLOCK + i) * dt_ms,
                "angle": float(angle[i]),
                "y": float(y[i]),
            })
    return frames


def make_standing_frames(n=200, dt_ms=10.0, seed=0):
    """Quiet standing with a little vertical jitter."""
    rng = np.random.default_rng(seed)
    return [
        {"timestamp": i * dt_ms, "angle": 10.0 + rng.normal(0, 0.5), "y": 500.0 + rng.normal(0, 1.0)}
        for i in range(n)
    ]


def make_pose_frames(n=5, dt_ms=33.0, knee_x=0.0):
    """Pose frames with a straight right leg."""
    frames = []
    for i in range(n):
        frames.append({
            "timestamp": i * dt_ms,
            "keypoints": [
                {"name": "right_hip", "x": 0.0, "y": 0.0, "score": 0.9},
                {"name": "right_knee", "x": knee_x, "y": 100.0, "score": 0.9},
                {"name": "right_ankle", "x": 0.0, "y": 200.0, "score": 0.9},
            ],
        })
    return frames


def make_capture(n_packets=2, per_packet=3, start_us=1_000_000, step_us=10_000):
    """Raw capture of back-to-back weight packets."""
    from myomotion.sensor import encode_samples
    data = b""
    k = 0
    for _ in range(n_packets):
        samples = []
        for _ in range(per_packet):
            samples.append((start_us + k * step_us, 1.0 + 0.5 * k))
            k += 1
        data += encode_samples(samples)
    return data


@pytest.fixture
def jump_frames():
    return make_jump_frames()


@pytest.fixture
def sine_force():
    return make_sine_force()
