"""Tests for coordinate normalization and distance helpers."""

import math
import unittest

import numpy as np

from src.gw_planner.domain.errors import InvalidCoordinate, InputError
from src.gw_planner.domain.haversine_utils import (
    degree_window,
    haversine,
    haversine_matrix,
    haversine_vector,
    normalize_coordinate,
)
from tests.geo_fixtures import offset, BASE_LAT, BASE_LNG


class TestNormalizeCoordinate(unittest.TestCase):

    def test_comma_and_point_are_equivalent(self):
        self.assertEqual(normalize_coordinate("40,5"), 40.5)
        self.assertEqual(normalize_coordinate("40.5"), 40.5)
        self.assertEqual(normalize_coordinate(" -23,5505 "), -23.5505)

    def test_numbers_pass_through(self):
        self.assertEqual(normalize_coordinate(12), 12.0)
        self.assertEqual(normalize_coordinate(-46.63), -46.63)
        self.assertEqual(normalize_coordinate(np.float64(1.25)), 1.25)

    def test_rejects_garbage(self):
        for bad in ("abc", "", "   ", None, True, float("nan"), float("inf"), "1,2,3", [1.0]):
            with self.subTest(value=bad):
                with self.assertRaises(InvalidCoordinate):
                    normalize_coordinate(bad)

    def test_invalid_coordinate_is_input_error(self):
        with self.assertRaises(InputError):
            normalize_coordinate("abc")


class TestHaversine(unittest.TestCase):

    def test_zero_for_same_point(self):
        for p in [(0.0, 0.0), (BASE_LAT, BASE_LNG), (89.9, 179.9), (-45.0, -120.0)]:
            self.assertEqual(haversine(p, p), 0.0)

    def test_symmetric(self):
        pts = [(0.0, 0.0), (BASE_LAT, BASE_LNG), (10.0, 20.0), (-33.9, 151.2)]
        for a in pts:
            for b in pts:
                self.assertEqual(haversine(a, b), haversine(b, a))

    def test_known_distance(self):
        # 1 grau de latitude ≈ 111.195 km na esfera de 6371 km
        self.assertAlmostEqual(haversine((0.0, 0.0), (1.0, 0.0)), 111194.93, delta=1.0)

    def test_local_offsets_match_meters(self):
        a = offset(0, 0)
        b = offset(300, 400)
        self.assertAlmostEqual(haversine(a, b), 500.0, delta=1.0)

    def test_vector_and_matrix_agree_with_scalar(self):
        pts = [offset(0, 0), offset(100, 0), offset(0, 250), offset(-80, -60)]
        lats = np.array([p[0] for p in pts])
        lngs = np.array([p[1] for p in pts])

        vec = haversine_vector(pts[0][0], pts[0][1], lats, lngs)
        mat = haversine_matrix(lats, lngs, lats, lngs)
        for j, p in enumerate(pts):
            self.assertAlmostEqual(vec[j], haversine(pts[0], p), delta=1e-6)
            self.assertAlmostEqual(mat[0, j], haversine(pts[0], p), delta=1e-6)
        self.assertTrue(np.allclose(mat, mat.T))


class TestDegreeWindow(unittest.TestCase):

    def test_window_contains_radius(self):
        for lat in (0.0, BASE_LAT, 60.0, -75.0):
            dlat, dlng = degree_window(lat, 150.0)
            # pontos a exatamente 150 m para norte e leste cabem na janela
            north = haversine((lat, 0.0), (lat + dlat, 0.0))
            east = haversine((lat, 0.0), (lat, dlng))
            self.assertGreaterEqual(north, 150.0)
            self.assertGreaterEqual(east, 150.0)

    def test_window_grows_with_radius_and_latitude(self):
        self.assertLess(degree_window(0.0, 150.0)[0], degree_window(0.0, 500.0)[0])
        self.assertLess(degree_window(0.0, 150.0)[1], degree_window(60.0, 150.0)[1])
        self.assertTrue(math.isfinite(degree_window(89.99999, 1000.0)[1]))
