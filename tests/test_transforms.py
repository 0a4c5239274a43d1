import math

import numpy as np
import pytest

from gltf_export import transforms


def test_compose_places_point():
    half = math.sqrt(0.5)
    matrix = transforms.compose((1.0, 2.0, 3.0), (0.0, 0.0, half, half), (2.0, 2.0, 2.0))

    # 90 degrees about Z maps +X onto +Y, then scale and translate
    assert np.dot(matrix, [1.0, 0.0, 0.0, 1.0]) == pytest.approx([1.0, 4.0, 3.0, 1.0])


def test_decompose_negative_determinant():
    matrix = transforms.compose((0.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), (-1.0, 2.0, 3.0))

    translation, rotation, scale = transforms.decompose(matrix)

    assert scale == pytest.approx((-1.0, 2.0, 3.0))
    assert rotation == pytest.approx((0.0, 0.0, 0.0, 1.0))


def test_rotation_to_quat_half_turn():
    # Trace is -1 here, so the diagonal branch is taken
    rotation = transforms.quat_to_rotation((0.0, 1.0, 0.0, 0.0))

    assert transforms.rotation_to_quat(rotation) == pytest.approx((0.0, 1.0, 0.0, 0.0))


def test_combine_reports_shear():
    stretch = transforms.compose((0.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), (2.0, 1.0, 1.0))
    tilt = (0.0, 0.0, math.sin(math.pi / 8), math.cos(math.pi / 8))

    _, exact = transforms.combine(stretch, (0.0, 0.0, 0.0), tilt, (1.0, 1.0, 1.0))
    assert not exact

    (translation, _, scale), exact = transforms.combine(stretch, (1.0, 0.0, 0.0),
                                                        (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
    assert exact
    assert translation == pytest.approx((2.0, 0.0, 0.0))
    assert scale == pytest.approx((2.0, 1.0, 1.0))
