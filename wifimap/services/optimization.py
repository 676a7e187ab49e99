"""
Router and extender placement optimization.

Primary placement: generate candidate locations (room centre, elevated
corners, furniture surfaces), drop those that break installation
constraints, score the rest on simulated coverage plus practical factors
and rank them.

Extender placement: find coverage gaps left by an existing network and
greedily add extenders where they cover the most remaining gap cells.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple
import logging
import math
import time

import numpy as np

from wifimap.core.config import settings
from wifimap.schemas.geometry import Point3D, RoomModel
from wifimap.schemas.optimization import (
    CandidateSource, CoverageGap, CoverageGapAnalysis, CoverageImprovement, CoverageProjection,
    CoverageQuality, ExtenderPlacementStrategy, ExtenderRecommendation, GapCharacteristics,
    GapPriority, InstallationComplexity, NetworkConfiguration, OptimizationStrategy,
    OptimizerConfiguration, RouterLocationEvaluation, RouterPlacementConstraints,
    RouterPlacementRecommendation, RouterPlacementResult, SearchIntensity
)
from wifimap.schemas.router import (
    DeviceSpec, RouterConfiguration, default_extender_spec, default_router_spec
)
from wifimap.schemas.signal import CoverageMap
from wifimap.services.coverage import (
    CancellationToken, CoverageMapGenerator, calculate_coverage_percentage,
    calculate_signal_statistics, find_regions, region_bounds
)
from wifimap.services.placement_cache import PlacementCache
from wifimap.services.rf_propagation import PropagationModel, check_same_frame, distance_to_wall

logger = logging.getLogger(__name__)

InternetAccessCheck = Callable[[Point3D, RoomModel], bool]

# Sparse evaluation grid per search intensity (meters per cell)
SEARCH_GRID_RESOLUTION: Dict[SearchIntensity, float] = {
    SearchIntensity.LOW: 1.5,
    SearchIntensity.MEDIUM: 1.0,
    SearchIntensity.HIGH: 0.5,
}

# (coverage %, signal quality) weights per strategy
STRATEGY_WEIGHTS: Dict[OptimizationStrategy, Tuple[float, float]] = {
    OptimizationStrategy.COVERAGE: (0.8, 0.2),
    OptimizationStrategy.QUALITY: (0.3, 0.7),
    OptimizationStrategy.MULTI_OBJECTIVE: (0.5, 0.5),
}

CENTRAL_OFFSETS = [(0.5, 0.0), (-0.5, 0.0), (0.0, 0.5), (0.0, -0.5)]
CORNER_INSET_M = 1.0
ELEVATED_HEIGHT_FRACTION = 0.8
INTERFERENCE_RADIUS_M = 2.0

# Coverage fraction one extender is assumed to add
EXTENDER_COVERAGE_GAIN = 0.15


def always_connected(point: Point3D, room: RoomModel) -> bool:
    """Default internet-access check: every location can be wired."""
    return True


@dataclass(frozen=True)
class Candidate:
    location: Point3D
    source: CandidateSource
    furniture_id: Optional[str] = None


@dataclass
class _GapState:
    """Mutable working copy of a gap during extender search."""
    id: str
    priority: GapPriority
    cells: Set[Tuple[int, int]] = field(default_factory=set)

    def weight(self, cell_area: float) -> float:
        return len(self.cells) * cell_area * self.priority.weight


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


class PlacementOptimizer:
    """
    Ranks router locations and plans extenders for a room.

    The optimizer owns its placement cache; pass one in to share it between
    optimizers or to inspect it in tests.
    """

    def __init__(
        self,
        propagation_model: Optional[PropagationModel] = None,
        coverage_generator: Optional[CoverageMapGenerator] = None,
        configuration: Optional[OptimizerConfiguration] = None,
        cache: Optional[PlacementCache] = None,
        internet_access: Optional[InternetAccessCheck] = None,
        max_workers: Optional[int] = None
    ):
        self.configuration = configuration if configuration is not None else OptimizerConfiguration()
        if propagation_model is None:
            propagation_model = PropagationModel(environment=self.configuration.environment)
        self.propagation_model = propagation_model
        if coverage_generator is None:
            coverage_generator = CoverageMapGenerator(
                self.propagation_model,
                usable_threshold_dbm=self.configuration.quality_requirements.minimum_signal_level,
            )
        self.coverage_generator = coverage_generator
        self.cache = cache if cache is not None else PlacementCache()
        self.internet_access = internet_access or always_connected
        self.max_workers = max_workers or settings.OPTIMIZER_MAX_WORKERS

        logger.info(
            f"PlacementOptimizer initialized: strategy={self.configuration.strategy.value}, "
            f"intensity={self.configuration.search_parameters.search_intensity.value}, "
            f"workers={self.max_workers}"
        )

    # ------------------------------------------------------------------
    # Primary placement
    # ------------------------------------------------------------------

    def optimize_primary_placement(
        self,
        room: RoomModel,
        constraints: Optional[RouterPlacementConstraints] = None,
        device_spec: Optional[DeviceSpec] = None,
        use_cache: bool = True,
        cancel_token: Optional[CancellationToken] = None
    ) -> RouterPlacementResult:
        """
        Rank router locations for a room.

        Args:
            room: Room to place the router in
            constraints: Installation constraints (defaults apply if None)
            device_spec: Router hardware to simulate
            use_cache: Read and populate the placement cache
            cancel_token: Checked between candidate evaluations

        Returns:
            RouterPlacementResult ranked by score, empty with a reason when
            no candidate satisfies the constraints
        """
        if constraints is None:
            constraints = RouterPlacementConstraints()
        device_spec = device_spec or default_router_spec()
        key = self._cache_key(room, constraints, device_spec)

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Placement cache hit for room {room.id}")
                return cached

        started = time.perf_counter()
        candidates = self.generate_candidates(room, constraints)
        valid = self.filter_candidates(candidates, room, constraints)

        if not valid:
            reason = (
                f"None of {len(candidates)} candidate locations satisfy the placement "
                f"constraints (height {constraints.min_height}-{constraints.max_height}m, "
                f"wall distance >= {constraints.min_wall_distance}m"
                + (f", outlet within {constraints.max_power_distance}m" if constraints.requires_power_outlet else "")
                + ")"
            )
            logger.warning(f"Room {room.id}: {reason}")
            result = RouterPlacementResult(
                room_id=room.id,
                candidates_considered=len(candidates),
                candidates_valid=0,
                reason=reason,
            )
        else:
            evaluations = self._evaluate_all(valid, room, device_spec, cancel_token)
            evaluations.sort(key=lambda e: (
                -e.overall_score, e.interference_risk, e.location.x, e.location.y, e.location.z
            ))
            limit = self.configuration.search_parameters.max_recommendations

            recommendations = [
                RouterPlacementRecommendation(
                    rank=rank,
                    location=evaluation.location,
                    evaluation=evaluation,
                    score=evaluation.overall_score,
                    reasoning=self._explain(evaluation, room),
                )
                for rank, evaluation in enumerate(evaluations[:limit], start=1)
            ]
            result = RouterPlacementResult(
                room_id=room.id,
                recommendations=recommendations,
                candidates_considered=len(candidates),
                candidates_valid=len(valid),
            )

        elapsed = time.perf_counter() - started
        budget = self.configuration.search_parameters.timeout_s
        if elapsed > budget:
            logger.warning(f"Placement search took {elapsed:.1f}s, over the {budget:.0f}s budget")

        logger.info(
            f"Primary placement for room {room.id}: {len(valid)}/{len(candidates)} candidates valid, "
            f"{len(result.recommendations)} recommended in {elapsed:.2f}s"
        )

        if use_cache:
            self.cache.put(key, result)
        return result

    def generate_candidates(
        self,
        room: RoomModel,
        constraints: RouterPlacementConstraints
    ) -> List[Candidate]:
        """Central, elevated-corner and furniture-surface candidates, deduplicated."""
        bounds = room.bounds
        floor = room.floor_height
        candidates: List[Candidate] = []

        # Room centre is always offered; offsets only if they stay inside
        center = bounds.center.with_z(floor + constraints.preferred_height)
        candidates.append(Candidate(center, CandidateSource.CENTRAL))
        for dx, dy in CENTRAL_OFFSETS:
            point = center + Point3D(x=dx, y=dy)
            if bounds.contains_2d(point):
                candidates.append(Candidate(point, CandidateSource.CENTRAL))

        # Elevated corners, inset from the walls
        elevated_z = floor + min(constraints.max_height, room.ceiling_height * ELEVATED_HEIGHT_FRACTION)
        for x, y in (
            (bounds.min.x + CORNER_INSET_M, bounds.min.y + CORNER_INSET_M),
            (bounds.max.x - CORNER_INSET_M, bounds.min.y + CORNER_INSET_M),
            (bounds.min.x + CORNER_INSET_M, bounds.max.y - CORNER_INSET_M),
            (bounds.max.x - CORNER_INSET_M, bounds.max.y - CORNER_INSET_M),
        ):
            point = Point3D(x=x, y=y, z=elevated_z)
            if bounds.contains_2d(point):
                candidates.append(Candidate(point, CandidateSource.ELEVATED))

        # Surfaces of furniture a router can stand on
        for item in room.furniture:
            if not item.is_router_suitable:
                continue
            surfaces = [s.center for s in item.surfaces] or [item.bounds.center.with_z(item.bounds.max.z)]
            for point in surfaces:
                height = point.z - floor
                if constraints.min_height <= height <= constraints.max_height:
                    candidates.append(Candidate(point, CandidateSource.FURNITURE, item.id))

        unique = []
        seen = set()
        for candidate in candidates:
            key = (round(candidate.location.x, 3), round(candidate.location.y, 3), round(candidate.location.z, 3))
            if key not in seen:
                seen.add(key)
                unique.append(candidate)

        logger.debug(f"Generated {len(unique)} candidates for room {room.id}")
        return unique

    def filter_candidates(
        self,
        candidates: Sequence[Candidate],
        room: RoomModel,
        constraints: RouterPlacementConstraints
    ) -> List[Candidate]:
        return [c for c in candidates if self.is_valid_location(c.location, room, constraints)]

    def is_valid_location(
        self,
        point: Point3D,
        room: RoomModel,
        constraints: RouterPlacementConstraints
    ) -> bool:
        """Check a location against every installation constraint."""
        height = point.z - room.floor_height
        if height < constraints.min_height or height > constraints.max_height:
            return False

        distances = self._wall_distances(point, room)
        if distances and min(distances) < constraints.min_wall_distance:
            return False

        if constraints.requires_power_outlet:
            if not distances or min(distances) > constraints.max_power_distance:
                return False

        if constraints.requires_internet_connection and not self.internet_access(point, room):
            return False

        return True

    def evaluate_location(
        self,
        candidate: Candidate,
        room: RoomModel,
        device_spec: DeviceSpec,
        cancel_token: Optional[CancellationToken] = None
    ) -> RouterLocationEvaluation:
        """Score one candidate on simulated coverage and practical factors."""
        router = RouterConfiguration(
            id=f"candidate-{candidate.source.value}",
            position=candidate.location,
            device_spec=device_spec,
            room_id=room.id,
        )
        coverage_map = self.coverage_generator.generate(
            [router], room,
            grid_resolution=self._search_resolution(room),
            cancel_token=cancel_token,
        )
        coverage_quality = self._coverage_quality(coverage_map)

        height = candidate.location.z - room.floor_height
        practical = self._practical_score(height, candidate.source == CandidateSource.FURNITURE)
        interference = self._interference_risk(candidate.location, room)
        accessibility = self._accessibility_score(height)

        weights = self.configuration.score_weights
        overall = (
            weights.coverage * coverage_quality.score +
            weights.practical * practical +
            weights.accessibility * accessibility
        )

        return RouterLocationEvaluation(
            location=candidate.location,
            source=candidate.source,
            furniture_id=candidate.furniture_id,
            coverage_quality=coverage_quality,
            practical_score=practical,
            interference_risk=interference,
            accessibility_score=accessibility,
            overall_score=overall,
        )

    def _evaluate_all(
        self,
        candidates: Sequence[Candidate],
        room: RoomModel,
        device_spec: DeviceSpec,
        cancel_token: Optional[CancellationToken]
    ) -> List[RouterLocationEvaluation]:
        if len(candidates) == 1 or self.max_workers <= 1:
            return [self.evaluate_location(c, room, device_spec, cancel_token) for c in candidates]

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(candidates))) as pool:
            return list(pool.map(
                lambda c: self.evaluate_location(c, room, device_spec, cancel_token),
                candidates
            ))

    def _coverage_quality(self, coverage_map: CoverageMap) -> CoverageQuality:
        grid = coverage_map.as_grid()
        requirements = self.configuration.quality_requirements
        coverage = calculate_coverage_percentage(grid, requirements.minimum_signal_level)
        stats = calculate_signal_statistics(grid)

        normalized_signal = _clamp((stats["mean"] + 100.0) / 80.0)
        uniformity = _clamp(1.0 - stats["std"] / 20.0)
        signal_quality = 0.5 * normalized_signal + 0.5 * uniformity

        coverage_weight, quality_weight = STRATEGY_WEIGHTS[self.configuration.strategy]
        return CoverageQuality(
            coverage_percentage=coverage,
            average_signal_dbm=stats["mean"],
            uniformity=uniformity,
            score=_clamp(coverage_weight * coverage + quality_weight * signal_quality),
        )

    def _practical_score(self, height: float, on_furniture: bool) -> float:
        score = 1.0
        if height > 2.5:
            score -= 0.2  # needs a ladder to service
        if height < 1.0:
            score -= 0.3  # body and furniture shadowing
        if on_furniture:
            score += 0.1
        return _clamp(score)

    def _interference_risk(self, point: Point3D, room: RoomModel) -> float:
        nearby = sum(
            1 for item in room.furniture
            if item.is_interference_source and item.bounds.center.distance_to(point) <= INTERFERENCE_RADIUS_M
        )
        return min(1.0, 0.2 * nearby)

    def _accessibility_score(self, height: float) -> float:
        if 0.5 <= height <= 2.0:
            return 1.0
        if height <= 2.5:
            return 0.8
        if height <= 3.0:
            return 0.6
        return 0.3

    def _search_resolution(self, room: RoomModel) -> float:
        resolution = SEARCH_GRID_RESOLUTION[self.configuration.search_parameters.search_intensity]
        extent = max(room.bounds.width, room.bounds.depth)
        return max(0.1, min(resolution, extent))

    def _wall_distances(self, point: Point3D, room: RoomModel) -> List[float]:
        """Horizontal distance to each wall, or to the room outline if no walls are known."""
        if room.walls:
            return [distance_to_wall(point, w) for w in room.walls]
        b = room.bounds
        if b.is_degenerate:
            return []
        return [point.x - b.min.x, b.max.x - point.x, point.y - b.min.y, b.max.y - point.y]

    def _explain(self, evaluation: RouterLocationEvaluation, room: RoomModel) -> str:
        height = evaluation.location.z - room.floor_height
        where = {
            CandidateSource.CENTRAL: "Central location",
            CandidateSource.ELEVATED: "Elevated corner",
            CandidateSource.FURNITURE: f"On furniture '{evaluation.furniture_id}'",
        }.get(evaluation.source, "Location")
        parts = [
            f"{where} at {height:.1f}m",
            f"covers {evaluation.coverage_quality.coverage_percentage:.0%} of the room",
            f"average {evaluation.coverage_quality.average_signal_dbm:.0f} dBm",
        ]
        if evaluation.interference_risk > 0:
            parts.append(f"interference risk {evaluation.interference_risk:.0%}")
        return ", ".join(parts)

    def _cache_key(
        self,
        room: RoomModel,
        constraints: RouterPlacementConstraints,
        device_spec: DeviceSpec
    ) -> str:
        model = self.propagation_model
        return PlacementCache.make_key(
            room.model_dump_json(),
            constraints.model_dump_json(),
            device_spec.model_dump_json(),
            self.configuration.model_dump_json(),
            f"{model.environment.value}|{model.obstruction_enabled}|{model.include_clutter}|"
            f"{model.calibration_offset_db}|{sorted((k.value, v) for k, v in model.material_losses.items())}",
        )

    # ------------------------------------------------------------------
    # Extender placement
    # ------------------------------------------------------------------

    def optimize_extender_placement(
        self,
        baseline: NetworkConfiguration,
        room: RoomModel,
        target_coverage: float = 0.95,
        extender_spec: Optional[DeviceSpec] = None,
        constraints: Optional[RouterPlacementConstraints] = None,
        grid_resolution: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> ExtenderPlacementStrategy:
        """
        Plan extenders that fill the coverage gaps of an existing network.

        Args:
            baseline: Routers already installed and the quality bar to meet
            room: Room the network serves
            target_coverage: Coverage fraction to aim for
            extender_spec: Extender hardware to simulate
            constraints: Installation constraints for extender height
            grid_resolution: Cell size for gap analysis (defaults to settings)
            cancel_token: Checked between coverage rows and extender iterations

        Returns:
            ExtenderPlacementStrategy with gap analysis and recommendations
        """
        if not 0.0 <= target_coverage <= 1.0:
            raise ValueError(f"target_coverage must be within [0, 1], got {target_coverage}")

        for router in baseline.routers:
            check_same_frame(router, room)

        extender_spec = extender_spec or default_extender_spec()
        if constraints is None:
            constraints = RouterPlacementConstraints()
        threshold = baseline.quality_requirements.minimum_signal_level
        resolution = settings.GRID_RESOLUTION_M if grid_resolution is None else grid_resolution

        coverage_map = self.coverage_generator.generate(
            baseline.routers, room, grid_resolution=resolution, cancel_token=cancel_token
        )
        grid = coverage_map.as_grid()
        analysis = self.analyze_coverage_gaps(coverage_map, threshold, target_coverage)
        count = self.estimate_extender_count(analysis, baseline.placement_constraints.max_extenders)

        cell_area = coverage_map.resolution ** 2
        total_cells = grid.size
        gaps = self._gap_states(analysis, coverage_map)
        recommendations: List[ExtenderRecommendation] = []

        while len(recommendations) < count and gaps:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            target = max(gaps, key=lambda g: (g.weight(cell_area), g.id))
            candidates = self._extender_candidates(target, gaps, baseline, room, coverage_map, constraints)

            best = None
            for candidate in candidates:
                covered, new_values = self._cells_covered_by(
                    candidate.location, extender_spec, gaps, room, coverage_map, threshold
                )
                backhaul = self._backhaul_rssi(candidate.location, baseline, room)
                score = len(covered) + _clamp((backhaul + 100.0) / 80.0)
                if covered and (best is None or score > best[0]):
                    best = (score, candidate, covered, new_values, backhaul)

            if best is None:
                logger.info(f"No extender location improves remaining gaps in room {room.id}")
                break

            _, candidate, covered, new_values, backhaul = best
            target_ids = sorted({g.id for g in gaps if g.cells & covered})
            gains = [new_values[cell] - grid[cell] for cell in covered]

            recommendations.append(ExtenderRecommendation(
                rank=len(recommendations) + 1,
                location=candidate.location,
                source=candidate.source,
                target_gap_ids=target_ids,
                improvement=CoverageImprovement(
                    additional_coverage=len(covered) / total_cells,
                    cells_covered=len(covered),
                    quality_improvement=max(0.0, float(np.mean(gains))),
                ),
                backhaul_rssi_dbm=backhaul,
                installation_complexity=self._installation_complexity(candidate, backhaul, room),
                reasoning=(
                    f"Covers {len(covered)} weak cells in {', '.join(target_ids)} "
                    f"with {backhaul:.0f} dBm backhaul"
                ),
            ))

            for gap in gaps:
                gap.cells -= covered
            gaps = [g for g in gaps if g.cells]

        added = sum(r.improvement.additional_coverage for r in recommendations)
        projected = min(1.0, analysis.current_coverage + added)

        logger.info(
            f"Extender plan for room {room.id}: {len(analysis.gaps)} gaps, "
            f"{len(recommendations)}/{count} extenders, coverage "
            f"{analysis.current_coverage:.1%} -> {projected:.1%}"
        )

        return ExtenderPlacementStrategy(
            baseline=baseline,
            coverage_analysis=analysis,
            recommended_extender_count=count,
            recommendations=recommendations,
            projected_improvement=CoverageProjection(
                current_coverage=analysis.current_coverage,
                projected_coverage=projected,
                improvement=projected - analysis.current_coverage,
            ),
        )

    def analyze_coverage_gaps(
        self,
        coverage_map: CoverageMap,
        threshold_dbm: float,
        target_coverage: float
    ) -> CoverageGapAnalysis:
        """Connected regions below threshold_dbm and how hard they are to fill."""
        grid = coverage_map.as_grid()
        resolution = coverage_map.resolution
        current = calculate_coverage_percentage(grid, threshold_dbm)

        gaps: List[CoverageGap] = []
        weighted_complexity = 0.0
        total_cells = 0

        for index, region in enumerate(find_regions(grid < threshold_dbm), start=1):
            values = grid[region.mask]
            average = float(values.mean())
            bounds = region_bounds(region, coverage_map.bounds, resolution, coverage_map.evaluation_height)
            cells = [
                coverage_map.cells[r * coverage_map.cols + c].location
                for r, c in zip(*np.nonzero(region.mask))
            ]

            fill_ratio = region.cell_count / float(region.width * region.height)
            weighted_complexity += (2.0 - fill_ratio) * region.cell_count
            total_cells += region.cell_count

            gaps.append(CoverageGap(
                id=f"gap-{index}",
                bounds=bounds,
                center=self._centroid(cells),
                area_m2=region.cell_count * resolution * resolution,
                average_signal_dbm=average,
                priority=self._gap_priority(average),
                cells=cells,
            ))

        complexity = _clamp(weighted_complexity / total_cells, 1.0, 2.0) if total_cells else 1.0

        return CoverageGapAnalysis(
            current_coverage=current,
            target_coverage=target_coverage,
            coverage_gap=max(0.0, target_coverage - current),
            gaps=gaps,
            characteristics=GapCharacteristics(
                total_gap_area_m2=sum(g.area_m2 for g in gaps),
                gap_count=len(gaps),
                largest_gap_area_m2=max((g.area_m2 for g in gaps), default=0.0),
                complexity_multiplier=complexity,
            ),
        )

    def estimate_extender_count(self, analysis: CoverageGapAnalysis, max_extenders: int) -> int:
        """ceil(gap / per-extender gain) scaled by gap complexity, clamped to [1, max]."""
        if not analysis.gaps or analysis.coverage_gap <= 0 or max_extenders <= 0:
            return 0
        base = math.ceil(analysis.coverage_gap / EXTENDER_COVERAGE_GAIN - 1e-9)
        scaled = int(base * analysis.characteristics.complexity_multiplier)
        return max(1, min(scaled, max_extenders))

    def _gap_states(self, analysis: CoverageGapAnalysis, coverage_map: CoverageMap) -> List[_GapState]:
        states = []
        for gap in analysis.gaps:
            cells = set()
            for point in gap.cells:
                cell = coverage_map.cell_at(point)
                if cell is not None:
                    cells.add((cell.row, cell.col))
            states.append(_GapState(id=gap.id, priority=gap.priority, cells=cells))
        return states

    def _extender_candidates(
        self,
        gap: _GapState,
        gaps: Sequence[_GapState],
        baseline: NetworkConfiguration,
        room: RoomModel,
        coverage_map: CoverageMap,
        constraints: RouterPlacementConstraints
    ) -> List[Candidate]:
        z = room.floor_height + constraints.preferred_height
        points = [coverage_map.cells[r * coverage_map.cols + c].location for r, c in sorted(gap.cells)]
        center = self._centroid(points).with_z(z)
        candidates = [Candidate(center, CandidateSource.GAP_CENTER)]

        xs = [p.x for p in points]
        ys = [p.y for p in points]
        reach = 1.0
        for item in room.furniture:
            if not item.is_router_suitable:
                continue
            for surface in item.surfaces or []:
                p = surface.center
                height = p.z - room.floor_height
                if (min(xs) - reach <= p.x <= max(xs) + reach and
                        min(ys) - reach <= p.y <= max(ys) + reach and
                        constraints.min_height <= height <= constraints.max_height):
                    candidates.append(Candidate(p, CandidateSource.FURNITURE, item.id))

        nearest = min(baseline.routers, key=lambda r: r.position.horizontal_distance_to(center))
        candidates.append(Candidate(nearest.position.midpoint(center).with_z(z), CandidateSource.RELAY))

        return [c for c in candidates if room.bounds.contains_2d(c.location)]

    def _cells_covered_by(
        self,
        location: Point3D,
        extender_spec: DeviceSpec,
        gaps: Sequence[_GapState],
        room: RoomModel,
        coverage_map: CoverageMap,
        threshold_dbm: float
    ) -> Tuple[Set[Tuple[int, int]], Dict[Tuple[int, int], float]]:
        extender = RouterConfiguration(
            id="extender-candidate", position=location, device_spec=extender_spec, room_id=room.id
        )
        covered = set()
        values = {}
        for gap in gaps:
            for cell in gap.cells:
                point = coverage_map.cells[cell[0] * coverage_map.cols + cell[1]].location
                rssi = self.propagation_model.predict(extender, point, room).best_rssi_dbm
                if rssi >= threshold_dbm:
                    covered.add(cell)
                    values[cell] = rssi
        return covered, values

    def _backhaul_rssi(self, location: Point3D, baseline: NetworkConfiguration, room: RoomModel) -> float:
        return max(
            self.propagation_model.predict(router, location, room).best_rssi_dbm
            for router in baseline.routers
        )

    def _installation_complexity(
        self,
        candidate: Candidate,
        backhaul_rssi: float,
        room: RoomModel
    ) -> InstallationComplexity:
        if backhaul_rssi < -75.0:
            return InstallationComplexity.COMPLEX  # likely needs a wired backhaul
        if candidate.source == CandidateSource.FURNITURE:
            return InstallationComplexity.SIMPLE
        distances = self._wall_distances(candidate.location, room)
        if distances and min(distances) <= 1.0:
            return InstallationComplexity.SIMPLE
        return InstallationComplexity.MODERATE

    def _gap_priority(self, average_dbm: float) -> GapPriority:
        if average_dbm < -85.0:
            return GapPriority.HIGH
        if average_dbm < -78.0:
            return GapPriority.MEDIUM
        return GapPriority.LOW

    @staticmethod
    def _centroid(points: Sequence[Point3D]) -> Point3D:
        n = len(points)
        return Point3D(
            x=sum(p.x for p in points) / n,
            y=sum(p.y for p in points) / n,
            z=sum(p.z for p in points) / n,
        )
