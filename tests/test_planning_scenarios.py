"""End-to-end planning scenarios through run_planning."""

import unittest

import numpy as np

from src.gw_planner.application.planning_use_case import run_planning
from src.gw_planner.application.refinement_controller import PlannerState
from src.gw_planner.domain.config import PlannerConfig
from src.gw_planner.domain.errors import InputError
from tests.geo_fixtures import as_rows, device, grid_devices, offset, uniform_devices


class TestScenarios(unittest.TestCase):

    def test_a_small_grid_needs_one_gateway(self):
        rows = as_rows(grid_devices(5, 2, 12.0))
        result = run_planning(
            rows,
            config=PlannerConfig(max_devices_per_gateway=250, min_gateway_distance=300.0),
            rng=np.random.default_rng(0),
        )

        self.assertEqual(result.outcome.state, PlannerState.DONE)
        self.assertEqual(len(result.gateway_table), 1)
        self.assertEqual(result.gateway_table.iloc[0]["n_devices"], 10)
        self.assertEqual(result.summary.assigned_devices, 10)
        self.assertEqual(result.summary.unassigned_devices, 0)
        self.assertEqual(result.gateway_table.iloc[0]["status"], "NEW")

    def test_b_large_area_splits_by_capacity(self):
        rows = as_rows(uniform_devices(500, 5000.0, seed=42))
        result = run_planning(
            rows,
            config=PlannerConfig(max_devices_per_gateway=250),
            rng=np.random.default_rng(42),
        )

        self.assertGreaterEqual(len(result.gateway_table), 2)
        self.assertTrue((result.gateway_table["n_devices"] <= 250).all())
        self.assertEqual(result.summary.initial_gateways, 2)
        for c in result.outcome.clusters:
            self.assertLessEqual(c.size, 250)

    def test_c_isolated_device_is_reported_not_assigned(self):
        devs = grid_devices(6, 5, 40.0) + [device("LONE", 20000.0, 20000.0)]
        result = run_planning(as_rows(devs), config=PlannerConfig(), rng=np.random.default_rng(0))

        self.assertEqual(list(result.outlier_report["id"]), ["LONE"])
        atribuidos = ",".join(result.gateway_table["assigned_devices"]).split(",")
        self.assertNotIn("LONE", atribuidos)
        self.assertEqual(result.summary.outlier_devices, 1)

        post = [f for f in result.map_layer["features"] if f["properties"]["id"] == "LONE"][0]
        self.assertTrue(post["properties"]["outlier"])
        self.assertIsNone(post["properties"]["gateway_id"])

    def test_d_fixed_gateway_is_kept_verbatim(self):
        lat0, lng0 = offset(40.0, 40.0)
        result = run_planning(
            as_rows(grid_devices(5, 5, 20.0)),
            config=PlannerConfig(),
            fixed_rows=[{"id": "GW-EXIST", "lat": lat0, "lng": lng0}],
            rng=np.random.default_rng(0),
        )

        fixos = result.gateway_table[result.gateway_table["status"] == "FIXED"]
        self.assertEqual(len(fixos), 1)
        self.assertEqual(fixos.iloc[0]["gateway_id"], "GW-EXIST")
        self.assertEqual(fixos.iloc[0]["lat"], lat0)
        self.assertEqual(fixos.iloc[0]["lng"], lng0)


class TestPlanningAccounting(unittest.TestCase):

    def test_duplicates_are_reported(self):
        devs = grid_devices(3, 3, 30.0)
        rows = as_rows(devs) + [{"id": "DUP", "lat": devs[0].lat, "lng": devs[0].lng}]
        result = run_planning(rows, rng=np.random.default_rng(0))

        self.assertEqual(result.summary.total_devices, 10)
        self.assertEqual(result.summary.valid_devices, 10)
        self.assertEqual(result.summary.duplicate_devices, 1)
        self.assertEqual(result.duplicate_report.iloc[0]["device_ids"], f"{devs[0].id},DUP")
        self.assertEqual(result.summary.assigned_devices, 9)

    def test_comma_coordinates_and_bad_rows(self):
        devs = grid_devices(3, 3, 30.0)
        rows = [
            {"id": d.id, "lat": str(d.lat).replace(".", ","), "lng": str(d.lng).replace(".", ",")}
            for d in devs
        ]
        rows.append({"id": "BROKEN", "lat": "n/a", "lng": "1"})
        result = run_planning(rows, rng=np.random.default_rng(0))

        self.assertEqual(result.summary.total_devices, 10)
        self.assertEqual(result.summary.valid_devices, 9)
        self.assertEqual(result.summary.assigned_devices, 9)

    def test_map_layer_covers_inputs_and_gateways(self):
        devs = grid_devices(3, 3, 30.0)
        result = run_planning(as_rows(devs), rng=np.random.default_rng(0))

        tags = [f["properties"]["tag"] for f in result.map_layer["features"]]
        self.assertEqual(tags.count("post"), 9)
        self.assertEqual(tags.count("gateway"), len(result.gateway_table))
        gw = [f for f in result.map_layer["features"] if f["properties"]["tag"] == "gateway"][0]
        self.assertEqual(gw["geometry"]["type"], "Point")
        self.assertEqual(gw["properties"]["kind"], "new")

    def test_summary_text_has_thresholds_and_alerts(self):
        devs = grid_devices(4, 4, 20.0, prefix="A") + grid_devices(4, 4, 20.0, prefix="B", ox_m=2000.0)
        result = run_planning(
            as_rows(devs), config=PlannerConfig(max_gateways=1), rng=np.random.default_rng(0)
        )

        texto = result.summary.to_text()
        self.assertIn("Estado final: CAPPED", texto)
        self.assertIn("Distância por salto: 150 m", texto)
        self.assertIn("--- ALERTAS ---", texto)
        self.assertIn("max_gateways=1", texto)
        self.assertEqual(result.summary.connected_components, 2)

    def test_empty_input_is_fatal(self):
        with self.assertRaises(InputError):
            run_planning([])
