"""Tests for the propagation model."""

import math

import pytest

from conftest import make_router
from wifimap.core.exceptions import CoordinateFrameMismatch
from wifimap.schemas.geometry import (
    BoundingBox, FurnitureItem, FurnitureType, Opening, OpeningType, Point3D, RoomModel,
    WallElement, WallMaterial
)
from wifimap.schemas.optimization import IndoorEnvironment
from wifimap.schemas.router import FrequencyBand
from wifimap.schemas.signal import SignalQuality
from wifimap.services.rf_propagation import (
    PropagationModel, calculate_fspl, estimate_throughput, get_material_loss, point_to_segment_distance,
    segment_intersection, segment_passes_through_box, spectral_efficiency
)

BAND_5 = FrequencyBand.BAND_5GHZ


def room_with_walls(*xs, material=WallMaterial.DRYWALL, height=3.0, openings=()):
    """10m x 4m room with walls across it at the given x positions."""
    bounds = BoundingBox(min=Point3D(x=-1, y=-2, z=0), max=Point3D(x=9, y=2, z=3))
    walls = [
        WallElement(
            id=f"wall-{x}", start=Point3D(x=x, y=-2, z=0), end=Point3D(x=x, y=2, z=0),
            height=height, material=material,
        )
        for x in xs
    ]
    return RoomModel(id="corridor", bounds=bounds, walls=walls, openings=list(openings))


def wall_segment(wall_id, start, end, material=WallMaterial.DRYWALL):
    return WallElement(
        id=wall_id, start=Point3D(x=start[0], y=start[1], z=0), end=Point3D(x=end[0], y=end[1], z=0),
        height=3.0, material=material,
    )


class TestGeometryHelpers:
    """Test segment helpers."""

    def test_fspl_reference_values(self):
        assert calculate_fspl(1.0, 2400.0) == pytest.approx(20 * math.log10(2400) - 27.55)
        assert calculate_fspl(10.0, 2400.0) - calculate_fspl(1.0, 2400.0) == pytest.approx(20.0)

    def test_fspl_distance_floor(self):
        assert calculate_fspl(0.0, 5000.0) == calculate_fspl(0.1, 5000.0)
        assert math.isfinite(calculate_fspl(0.0, 5000.0))

    def test_segment_intersection(self):
        hit = segment_intersection(0, 0, 4, 0, 2, -1, 2, 1)
        assert hit is not None
        x, y, t = hit
        assert (x, y) == pytest.approx((2.0, 0.0))
        assert t == pytest.approx(0.5)

    def test_segment_intersection_misses(self):
        assert segment_intersection(0, 0, 1, 0, 2, -1, 2, 1) is None
        assert segment_intersection(0, 0, 4, 0, 0, 1, 4, 1) is None  # parallel

    def test_point_to_segment_distance(self):
        assert point_to_segment_distance(1, 1, 0, 0, 2, 0) == pytest.approx(1.0)
        assert point_to_segment_distance(3, 0, 0, 0, 2, 0) == pytest.approx(1.0)
        assert point_to_segment_distance(1, 1, 0, 0, 0, 0) == pytest.approx(math.sqrt(2))

    def test_segment_through_box(self):
        box = BoundingBox(min=Point3D(x=1, y=-0.5, z=0), max=Point3D(x=2, y=0.5, z=1))
        assert segment_passes_through_box(Point3D(x=0, y=0, z=0.5), Point3D(x=3, y=0, z=0.5), box)
        assert not segment_passes_through_box(Point3D(x=0, y=0, z=1.5), Point3D(x=3, y=0, z=1.5), box)

    def test_environment_profiles(self):
        residential = get_material_loss(WallMaterial.CONCRETE, IndoorEnvironment.RESIDENTIAL)
        enterprise = get_material_loss(WallMaterial.CONCRETE, IndoorEnvironment.ENTERPRISE)
        assert enterprise > residential
        assert get_material_loss(WallMaterial.DRYWALL, overrides={WallMaterial.DRYWALL: 6.0}) == 6.0

    @pytest.mark.parametrize("snr,efficiency", [
        (40.0, 0.9),
        (35.0, 0.9),
        (30.0, 0.75),
        (15.0, 0.6),
        (12.0, 0.4),
        (5.0, 0.2),
        (4.9, 0.05),
        (0.0, 0.05),
    ])
    def test_spectral_efficiency_steps(self, snr, efficiency):
        assert spectral_efficiency(snr) == efficiency

    def test_throughput_per_band(self):
        assert estimate_throughput(FrequencyBand.BAND_2_4GHZ, 40.0).estimated_mbps == pytest.approx(688.0 * 0.9)
        assert estimate_throughput(BAND_5, 20.0).estimated_mbps == pytest.approx(2882.0 * 0.6)
        assert estimate_throughput(FrequencyBand.BAND_6GHZ, 0.0).theoretical_mbps == 2882.0


class TestPropagationModel:
    """Test signal prediction."""

    def test_one_metre_reference(self, open_room):
        model = PropagationModel()
        router = make_router(1.0, 2.0)

        prediction = model.predict(router, Point3D(x=2.0, y=2.0, z=1.5), open_room, BAND_5)

        assert prediction.best_rssi_dbm == pytest.approx(22.0 - calculate_fspl(1.0, 5000.0))
        assert prediction.best_band == BAND_5
        assert list(prediction.bands) == [BAND_5]

    def test_all_supported_bands_by_default(self, open_room):
        prediction = PropagationModel().predict(make_router(1, 2), Point3D(x=3, y=2, z=1.5), open_room)

        assert set(prediction.bands) == set(FrequencyBand)
        # Same power on every band: the lowest frequency wins
        assert prediction.best_band == FrequencyBand.BAND_2_4GHZ

    def test_monotonic_path_loss(self):
        room = room_with_walls()
        model = PropagationModel()
        router = make_router(0.0, 0.0)

        values = [
            model.predict(router, Point3D(x=d, y=0.0, z=1.5), room, BAND_5).best_rssi_dbm
            for d in (0.5, 1.0, 2.0, 3.0, 5.0, 8.0)
        ]

        assert all(a >= b for a, b in zip(values, values[1:]))

    def test_wall_attenuation_is_additive(self):
        model = PropagationModel()
        router = make_router(0.0, 0.0)
        target = Point3D(x=3.0, y=0.0, z=1.5)

        none = model.predict(router, target, room_with_walls(), BAND_5)
        one = model.predict(router, target, room_with_walls(1.0), BAND_5)
        two = model.predict(router, target, room_with_walls(1.0, 2.0), BAND_5)
        drywall = model.material_loss(WallMaterial.DRYWALL)

        assert none.best_rssi_dbm - one.best_rssi_dbm == pytest.approx(drywall)
        assert one.best_rssi_dbm - two.best_rssi_dbm == pytest.approx(drywall)
        assert two.walls_crossed == 2

    def test_wall_split_at_the_path_counts_once(self):
        model = PropagationModel()
        router = make_router(0.0, 0.0)
        target = Point3D(x=4.0, y=0.0, z=1.5)
        bounds = BoundingBox(min=Point3D(x=-1, y=-2, z=0), max=Point3D(x=9, y=2, z=3))
        halves = [
            wall_segment("lower", (2.0, -2.0), (2.0, 0.0)),
            wall_segment("upper", (2.0, 0.0), (2.0, 2.0)),
        ]

        whole = model.predict(router, target, room_with_walls(2.0), BAND_5)
        split = model.predict(router, target, RoomModel(id="corridor", bounds=bounds, walls=halves), BAND_5)

        assert split.walls_crossed == 1
        assert split.best_rssi_dbm == pytest.approx(whole.best_rssi_dbm)

    def test_corner_joint_keeps_the_heavier_wall(self):
        model = PropagationModel()
        bounds = BoundingBox(min=Point3D(x=-1, y=-2, z=0), max=Point3D(x=9, y=4, z=3))
        corner = [
            wall_segment("side", (2.0, -1.0), (2.0, 1.0)),
            wall_segment("back", (2.0, 1.0), (4.0, 1.0), material=WallMaterial.CONCRETE),
        ]
        room = RoomModel(id="l-shape", bounds=bounds, walls=corner)

        crossings = model.find_wall_crossings(Point3D(x=0, y=0, z=1.5), Point3D(x=4, y=2, z=1.5), room)

        assert len(crossings) == 1
        assert crossings[0].wall.id == "back"
        assert crossings[0].loss_db == model.material_loss(WallMaterial.CONCRETE)

    def test_bisected_room_scenario(self, bisected_room):
        model = PropagationModel(material_losses={WallMaterial.DRYWALL: 6.0})
        router = make_router(0.0, 0.0, 1.5)

        near = model.predict(router, Point3D(x=1.0, y=0.0, z=1.5), bisected_room, BAND_5)
        far = model.predict(router, Point3D(x=4.0, y=0.0, z=1.5), bisected_room, BAND_5)
        extra_fspl = calculate_fspl(4.0, 5000.0) - calculate_fspl(1.0, 5000.0)

        assert near.walls_crossed == 0
        assert far.walls_crossed == 1
        assert near.best_rssi_dbm - far.best_rssi_dbm == pytest.approx(6.0 + extra_fspl)

    def test_path_over_short_wall_is_not_obstructed(self):
        model = PropagationModel()
        router = make_router(0.0, 0.0, 1.5)
        target = Point3D(x=3.0, y=0.0, z=1.5)

        low_wall = model.predict(router, target, room_with_walls(1.0, height=1.0), BAND_5)
        no_wall = model.predict(router, target, room_with_walls(), BAND_5)

        assert low_wall.walls_crossed == 0
        assert low_wall.best_rssi_dbm == pytest.approx(no_wall.best_rssi_dbm)

    def test_open_door_removes_wall_loss(self):
        door = Opening(
            id="door", type=OpeningType.DOOR, is_passable=True,
            bounds=BoundingBox(min=Point3D(x=0.95, y=-0.5, z=0), max=Point3D(x=1.05, y=0.5, z=2.1)),
        )
        model = PropagationModel()
        router = make_router(0.0, 0.0, 1.5)
        target = Point3D(x=3.0, y=0.0, z=1.5)

        through_door = model.predict(
            router, target, room_with_walls(1.0, material=WallMaterial.CONCRETE, openings=[door]), BAND_5
        )
        open_path = model.predict(router, target, room_with_walls(), BAND_5)

        assert through_door.best_rssi_dbm == pytest.approx(open_path.best_rssi_dbm)

    def test_window_uses_glass_loss(self):
        window = Opening(
            id="window", type=OpeningType.WINDOW,
            bounds=BoundingBox(min=Point3D(x=0.95, y=-1.0, z=1.0), max=Point3D(x=1.05, y=1.0, z=2.0)),
        )
        model = PropagationModel()
        router = make_router(0.0, 0.0, 1.5)
        target = Point3D(x=3.0, y=0.0, z=1.5)

        through_window = model.predict(
            router, target, room_with_walls(1.0, material=WallMaterial.CONCRETE, openings=[window]), BAND_5
        )
        open_path = model.predict(router, target, room_with_walls(), BAND_5)

        assert open_path.best_rssi_dbm - through_window.best_rssi_dbm == pytest.approx(
            model.material_loss(WallMaterial.GLASS)
        )

    def test_obstruction_can_be_disabled(self):
        model = PropagationModel(obstruction_enabled=False)
        router = make_router(0.0, 0.0)
        target = Point3D(x=3.0, y=0.0, z=1.5)

        walled = model.predict(router, target, room_with_walls(1.0, material=WallMaterial.METAL), BAND_5)
        open_path = model.predict(router, target, room_with_walls(), BAND_5)

        assert walled.best_rssi_dbm == pytest.approx(open_path.best_rssi_dbm)
        assert walled.walls_crossed == 0

    def test_clutter_loss_is_capped(self):
        cabinets = [
            FurnitureItem(
                id=f"cab-{i}", type=FurnitureType.CABINET,
                bounds=BoundingBox(min=Point3D(x=0.5 + i * 0.6, y=-0.3, z=0), max=Point3D(x=0.9 + i * 0.6, y=0.3, z=2)),
            )
            for i in range(5)
        ]
        bounds = BoundingBox(min=Point3D(x=-1, y=-2, z=0), max=Point3D(x=9, y=2, z=3))
        room = RoomModel(id="storage", bounds=bounds, furniture=cabinets)
        router = make_router(0.0, 0.0)
        target = Point3D(x=4.0, y=0.0, z=1.5)

        plain = PropagationModel().predict(router, target, room, BAND_5)
        cluttered = PropagationModel(include_clutter=True).predict(router, target, room, BAND_5)

        assert plain.best_rssi_dbm - cluttered.best_rssi_dbm == pytest.approx(15.0)

    def test_rssi_is_clamped(self, open_room):
        model = PropagationModel()
        loud = make_router(1.0, 2.0, tx_power=100.0)
        quiet = make_router(0.1, 0.1, tx_power=-80.0)
        target = Point3D(x=4.5, y=3.5, z=1.5)

        assert model.predict(loud, target, open_room).best_rssi_dbm == -20.0
        assert model.predict(quiet, target, open_room).best_rssi_dbm == -100.0

    def test_snr_against_noise_floor(self, open_room):
        prediction = PropagationModel().predict(make_router(1, 2), Point3D(x=3, y=2, z=1.5), open_room, BAND_5)
        band = prediction.bands[BAND_5]

        assert band.snr_db == pytest.approx(band.rssi_dbm + 95.0)

    def test_throughput_follows_best_band_snr(self, open_room):
        prediction = PropagationModel().predict(make_router(1, 2), Point3D(x=3, y=2, z=1.5), open_room)
        best = prediction.bands[prediction.best_band]

        assert prediction.throughput.band == prediction.best_band
        assert prediction.throughput.efficiency == spectral_efficiency(best.snr_db)
        assert prediction.throughput.estimated_mbps == pytest.approx(
            prediction.throughput.theoretical_mbps * prediction.throughput.efficiency
        )

    def test_wall_loss_is_band_independent_by_default(self):
        router = make_router(0.0, 0.0)
        target = Point3D(x=3.0, y=0.0, z=1.5)

        prediction = PropagationModel().predict(router, target, room_with_walls(1.0))

        assert {b.obstruction_loss_db for b in prediction.bands.values()} == {3.0}

    def test_frequency_scaled_wall_loss(self):
        model = PropagationModel(frequency_scaling=True)
        router = make_router(0.0, 0.0)
        target = Point3D(x=3.0, y=0.0, z=1.5)

        prediction = model.predict(router, target, room_with_walls(1.0))
        losses = {band: b.obstruction_loss_db for band, b in prediction.bands.items()}

        assert losses[FrequencyBand.BAND_2_4GHZ] == pytest.approx(3.0)
        assert losses[FrequencyBand.BAND_5GHZ] == pytest.approx(3.6)
        assert losses[FrequencyBand.BAND_6GHZ] == pytest.approx(4.2)
        assert prediction.walls_crossed == 1

    def test_calibration_offset_shifts_prediction(self, open_room):
        router = make_router(1, 2)
        target = Point3D(x=3, y=2, z=1.5)

        base = PropagationModel().predict(router, target, open_room, BAND_5)
        shifted = PropagationModel(calibration_offset_db=-4.0).predict(router, target, open_room, BAND_5)

        assert base.best_rssi_dbm - shifted.best_rssi_dbm == pytest.approx(4.0)

    @pytest.mark.parametrize("rssi,quality", [
        (-30.0, SignalQuality.EXCELLENT),
        (-50.0, SignalQuality.EXCELLENT),
        (-50.1, SignalQuality.GOOD),
        (-70.0, SignalQuality.GOOD),
        (-70.1, SignalQuality.FAIR),
        (-85.0, SignalQuality.FAIR),
        (-85.1, SignalQuality.POOR),
        (-100.0, SignalQuality.POOR),
    ])
    def test_quality_buckets(self, rssi, quality):
        assert SignalQuality.from_rssi(rssi) == quality

    def test_prediction_bucket_matches_rssi(self):
        model = PropagationModel()
        room = room_with_walls(2.0, material=WallMaterial.BRICK)
        router = make_router(0.0, 0.0)

        for x in (0.5, 1.5, 3.0, 6.0, 8.5):
            prediction = model.predict(router, Point3D(x=x, y=0.0, z=1.5), room)
            assert prediction.quality == SignalQuality.from_rssi(prediction.best_rssi_dbm)


class TestConfidence:
    """Test confidence behaviour and degraded inputs."""

    def test_confidence_drops_with_walls_and_distance(self):
        model = PropagationModel()
        router = make_router(0.0, 0.0)

        near = model.predict(router, Point3D(x=1, y=0, z=1.5), room_with_walls())
        far = model.predict(router, Point3D(x=8, y=0, z=1.5), room_with_walls())
        walled = model.predict(router, Point3D(x=8, y=0, z=1.5), room_with_walls(2.0, 4.0, 6.0))

        assert near.confidence > far.confidence > walled.confidence
        assert walled.confidence >= 0.1

    def test_confidence_floor(self):
        model = PropagationModel()
        xs = [0.5 + 0.08 * i for i in range(100)]
        router = make_router(-0.9, 0.0)

        prediction = model.predict(router, Point3D(x=8.9, y=0, z=1.5), room_with_walls(*xs))

        assert prediction.confidence == pytest.approx(0.1)
        assert all(b.confidence >= 0.1 for b in prediction.bands.values())

    def test_degenerate_room_is_best_effort(self):
        flat = RoomModel(id="flat", bounds=BoundingBox(min=Point3D(), max=Point3D(x=5, y=0, z=3)))
        normal = room_with_walls()
        router = make_router(0.0, 0.0)
        target = Point3D(x=2, y=0, z=1.5)

        degraded = PropagationModel().predict(router, target, flat)
        regular = PropagationModel().predict(router, target, normal)

        assert degraded.best_rssi_dbm == pytest.approx(regular.best_rssi_dbm)
        assert degraded.confidence < regular.confidence

    def test_transmitter_outside_room_reduces_confidence(self):
        room = room_with_walls()
        target = Point3D(x=2, y=0, z=1.5)

        inside = PropagationModel().predict(make_router(0.0, 0.0), target, room)
        outside = PropagationModel().predict(make_router(0.0, 6.0), target, room)

        assert outside.confidence < inside.confidence

    def test_router_from_another_room_is_rejected(self, open_room):
        router = make_router(1.0, 1.0, room_id="kitchen")

        with pytest.raises(CoordinateFrameMismatch):
            PropagationModel().predict(router, Point3D(x=2, y=2, z=1.5), open_room)

    def test_router_pinned_to_same_room_is_accepted(self, open_room):
        router = make_router(1.0, 1.0, room_id=open_room.id)
        prediction = PropagationModel().predict(router, Point3D(x=2, y=2, z=1.5), open_room)
        assert prediction.transmitter_id == router.id
