"""Tests for the refinement controller state machine."""

import itertools
import unittest

import numpy as np

from src.gw_planner.application.refinement_controller import (
    GatewayRefinementController,
    PlannerState,
    initial_k,
    separation_violations,
)
from src.gw_planner.domain.config import PlannerConfig
from src.gw_planner.domain.entities import Gateway
from src.gw_planner.domain.errors import SeedingExhausted
from src.gw_planner.domain.haversine_utils import haversine
from tests.geo_fixtures import device, fixed_gateway, grid_devices


class _Recorder:
    def __init__(self):
        self.events = []

    def emit(self, message, progress):
        self.events.append((message, progress))


class _Broken:
    def emit(self, message, progress):
        raise RuntimeError("socket closed")


def _two_groups():
    return grid_devices(4, 4, 20.0, prefix="A") + grid_devices(4, 4, 20.0, prefix="B", ox_m=2000.0)


class TestInitialK(unittest.TestCase):

    def test_by_capacity(self):
        self.assertEqual(initial_k(500, PlannerConfig()), 2)
        self.assertEqual(initial_k(10, PlannerConfig()), 1)
        self.assertEqual(initial_k(251, PlannerConfig()), 2)

    def test_max_gateways_wins(self):
        self.assertEqual(initial_k(10, PlannerConfig(max_gateways=3)), 3)

    def test_at_least_fixed_count(self):
        self.assertEqual(initial_k(10, PlannerConfig(), n_fixed=2), 2)


class TestSeparation(unittest.TestCase):

    def test_fixed_pairs_are_reported(self):
        g1 = fixed_gateway("G1", 0, 0)
        g2 = fixed_gateway("G2", 50.0, 0)
        pares = separation_violations([g1, g2], 300.0)
        self.assertEqual([(i, j) for i, j, _ in pares], [(0, 1)])
        self.assertAlmostEqual(pares[0][2], 50.0, delta=0.5)

    def test_new_pair_too_close(self):
        g1 = fixed_gateway("G1", 0, 0)
        g2 = Gateway.from_device(device("N", 100.0, 0))
        pares = separation_violations([g1, g2], 300.0)
        self.assertEqual(len(pares), 1)
        self.assertAlmostEqual(pares[0][2], 100.0, delta=0.5)


class TestController(unittest.TestCase):

    def test_grows_until_valid(self):
        devs = _two_groups()
        progress = _Recorder()
        outcome = GatewayRefinementController(
            PlannerConfig(), progress=progress, rng=np.random.default_rng(1)
        ).run(devs)

        self.assertEqual(outcome.state, PlannerState.DONE)
        self.assertTrue(outcome.accepted)
        self.assertEqual(outcome.k_initial, 1)
        self.assertEqual(outcome.k_final, 2)
        self.assertEqual(outcome.rounds, 2)
        self.assertEqual(outcome.unassigned_ids, [])
        self.assertEqual(outcome.alerts, [])
        self.assertTrue(progress.events)
        self.assertTrue(all(0 <= p <= 100 for _, p in progress.events))

    def test_accepted_solution_invariants(self):
        cfg = PlannerConfig(max_devices_per_gateway=16)
        devs = _two_groups() + grid_devices(4, 4, 20.0, prefix="C", oy_m=2000.0)
        outcome = GatewayRefinementController(cfg, rng=np.random.default_rng(2)).run(devs)

        self.assertEqual(outcome.state, PlannerState.DONE)
        for a, b in itertools.combinations(outcome.clusters, 2):
            self.assertGreaterEqual(haversine(a.medoid.coords, b.medoid.coords), cfg.min_gateway_distance)
        for c, v in zip(outcome.clusters, outcome.validations):
            self.assertLessEqual(c.size, cfg.max_devices_per_gateway)
            self.assertTrue(v.valid)
            self.assertTrue(all(v.distances[d] <= cfg.max_hops for d in c.device_ids))

        atribuidos = [d for c in outcome.clusters for d in c.device_ids]
        self.assertEqual(sorted(atribuidos), sorted(d.id for d in devs))

    def test_capped_by_max_gateways(self):
        outcome = GatewayRefinementController(
            PlannerConfig(max_gateways=1), rng=np.random.default_rng(0)
        ).run(_two_groups())

        self.assertEqual(outcome.state, PlannerState.CAPPED)
        self.assertEqual(outcome.k_final, 1)
        self.assertTrue(any("max_gateways=1" in a for a in outcome.alerts))
        self.assertTrue(outcome.violations)

    def test_capped_by_iteration_limit(self):
        outcome = GatewayRefinementController(
            PlannerConfig(max_iterations=1), rng=np.random.default_rng(0)
        ).run(_two_groups())

        self.assertEqual(outcome.state, PlannerState.CAPPED)
        self.assertTrue(any("max_iterations=1" in a for a in outcome.alerts))

    def test_seeding_failure_on_first_attempt_propagates(self):
        devs = grid_devices(5, 2, 10.0)
        with self.assertRaises(SeedingExhausted):
            GatewayRefinementController(PlannerConfig(max_gateways=2)).run(devs)

    def test_seeding_failure_while_growing_caps(self):
        # grupo compacto + poste a 200 m: desconectado, mas sem espaço para 2 gateways a 300 m
        devs = grid_devices(5, 2, 10.0) + [device("P", 200.0, 0.0)]
        outcome = GatewayRefinementController(PlannerConfig(), rng=np.random.default_rng(0)).run(devs)

        self.assertEqual(outcome.state, PlannerState.CAPPED)
        self.assertEqual(outcome.k_final, 1)
        self.assertTrue(any("Não foi possível posicionar 2 gateways" in a for a in outcome.alerts))

    def test_fixed_gateway_stays_put(self):
        devs = grid_devices(4, 4, 20.0)
        gw = fixed_gateway("G1", 30.0, 30.0)
        outcome = GatewayRefinementController(PlannerConfig(), fixed_gateways=[gw]).run(devs)

        self.assertEqual(outcome.state, PlannerState.DONE)
        self.assertEqual(outcome.clusters[0].medoid, gw)

    def test_fixed_gateways_too_close_end_capped(self):
        devs = grid_devices(4, 4, 20.0)
        fixos = [fixed_gateway("G1", 10.0, 30.0), fixed_gateway("G2", 70.0, 30.0)]
        outcome = GatewayRefinementController(PlannerConfig(), fixed_gateways=fixos).run(devs)

        self.assertEqual(outcome.state, PlannerState.CAPPED)
        self.assertFalse(outcome.accepted)
        self.assertEqual(outcome.rounds, 1)
        self.assertEqual(outcome.k_final, 2)
        self.assertTrue(any("Gateways fixos a menos de 300 m" in a for a in outcome.alerts))
        self.assertIn("Violação: Cluster 1: Gateways fixos G1 e G2 a 60 m (mínimo 300 m)", outcome.alerts)

    def test_done_implies_separation(self):
        devs = grid_devices(4, 4, 20.0) + grid_devices(4, 4, 20.0, prefix="B", ox_m=2000.0)
        fixos = [fixed_gateway("G1", 30.0, 30.0), fixed_gateway("G2", 2030.0, 30.0)]
        outcome = GatewayRefinementController(PlannerConfig(), fixed_gateways=fixos).run(devs)

        self.assertEqual(outcome.state, PlannerState.DONE)
        for a, b in itertools.combinations(outcome.clusters, 2):
            self.assertGreaterEqual(haversine(a.medoid.coords, b.medoid.coords), 300.0)

    def test_broken_progress_sink_does_not_change_outcome(self):
        devs = _two_groups()
        a = GatewayRefinementController(PlannerConfig(), rng=np.random.default_rng(7)).run(devs)
        b = GatewayRefinementController(
            PlannerConfig(), progress=_Broken(), rng=np.random.default_rng(7)
        ).run(devs)

        self.assertEqual(a.state, b.state)
        self.assertEqual([c.medoid for c in a.clusters], [c.medoid for c in b.clusters])
        self.assertEqual([c.device_ids for c in a.clusters], [c.device_ids for c in b.clusters])

    def test_empty_clusters_are_pruned(self):
        # gateway fixo longe de tudo fica sem postes
        devs = grid_devices(4, 4, 20.0)
        far = fixed_gateway("G_FAR", 50000.0, 0.0)
        near = fixed_gateway("G_NEAR", 30.0, 30.0)
        outcome = GatewayRefinementController(PlannerConfig(), fixed_gateways=[near, far]).run(devs)

        self.assertEqual(outcome.k_initial, 2)
        self.assertEqual([c.medoid.id for c in outcome.clusters], ["G_NEAR"])
        self.assertEqual(outcome.k_final, 1)
