"""
Geofence index for point containment queries.

The index answers "which geofences contain point P". Geofences are
bucketed into a lat/lon grid by bounding box so a query only runs the
exact containment test on nearby candidates:

    Step 1: Look up the grid cell holding the point
    Step 2: Reject candidates whose bounding box misses the point
    Step 3: Run the exact test (haversine for circles, ray casting for polygons)

Containment is inclusive: a point exactly at radius distance from a circle
center, or exactly on a polygon edge or vertex, is contained.

All state lives in an immutable snapshot. Writers build a new snapshot and
publish it with a single reference assignment, so concurrent queries never
observe a partially updated index. Geofences crossing the antimeridian are
not supported and give undefined results.
"""

import math
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from geoalert.common.geo import (
    BBOX_PAD,
    BBox,
    bbox_contains,
    calculate_bounding_box,
    circle_bounding_box,
    haversine_distance,
    point_in_polygon,
    validate_coordinates,
)
from geoalert.core.errors import InvalidGeometryError
from geoalert.core.models import Circle, Geofence, Point, Polygon
from geoalert.observability import metrics
from geoalert.observability.logging_setup import get_logger

log = get_logger("geoalert.index")

Cell = Tuple[int, int]


def _check_point(point: Point) -> None:
    lat = getattr(point, "lat", None)
    lon = getattr(point, "lon", None)
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        raise InvalidGeometryError("point must have numeric lat/lon", point=repr(point))
    if not validate_coordinates(lat, lon):
        raise InvalidGeometryError("point out of range", lat=lat, lon=lon)


def _check_geofence(geofence: Geofence) -> None:
    """모델 검증을 우회한 형상도 인덱스에 들어오기 전에 거부합니다."""
    shape = geofence.shape
    if isinstance(shape, Circle):
        _check_point(shape.center)
        if not (isinstance(shape.radius_m, (int, float)) and math.isfinite(shape.radius_m)
                and shape.radius_m > 0):
            raise InvalidGeometryError("circle radius must be positive",
                                       geofence_id=geofence.id, radius_m=shape.radius_m)
    elif isinstance(shape, Polygon):
        if len(shape.vertices) < 3:
            raise InvalidGeometryError("polygon requires at least 3 vertices",
                                       geofence_id=geofence.id)
        for vertex in shape.vertices:
            _check_point(vertex)
    else:
        raise InvalidGeometryError("unsupported shape", geofence_id=geofence.id,
                                   shape=type(shape).__name__)


def shape_bounding_box(geofence: Geofence) -> BBox:
    """지오펜스 형상의 경계 상자 (min_lat, min_lon, max_lat, max_lon)"""
    shape = geofence.shape
    if isinstance(shape, Circle):
        return circle_bounding_box(shape.center.lat, shape.center.lon, shape.radius_m)
    return calculate_bounding_box(shape.ring())


def contains(geofence: Geofence, point: Point) -> bool:
    """
    지오펜스가 점을 포함하는지 확인합니다 (경계 포함).

    Args:
        geofence: 검사할 지오펜스
        point: 검사할 점

    Returns:
        포함 여부
    """
    shape = geofence.shape
    if isinstance(shape, Circle):
        distance = haversine_distance(shape.center.lat, shape.center.lon, point.lat, point.lon)
        return distance <= shape.radius_m
    return point_in_polygon(point.as_xy(), shape.ring(), include_boundary=True)


@dataclass(frozen=True)
class IndexSnapshot:
    """불변 인덱스 스냅샷"""
    version: int
    cell_size_deg: float
    geofences: Mapping[str, Geofence] = field(default_factory=dict)
    bboxes: Mapping[str, BBox] = field(default_factory=dict)
    cells: Mapping[Cell, Tuple[str, ...]] = field(default_factory=dict)
    oversized: Tuple[str, ...] = ()

    def cell_of(self, lat: float, lon: float) -> Cell:
        return (math.floor(lat / self.cell_size_deg), math.floor(lon / self.cell_size_deg))

    def candidates(self, point: Point) -> List[str]:
        """격자와 경계 상자로 좁힌 후보 지오펜스 ID"""
        bucket = self.cells.get(self.cell_of(point.lat, point.lon), ())
        seen: Set[str] = set()
        out: List[str] = []
        for geofence_id in bucket + self.oversized:
            if geofence_id in seen:
                continue
            seen.add(geofence_id)
            if bbox_contains(self.bboxes[geofence_id], point.lat, point.lon):
                out.append(geofence_id)
        return out


def build_snapshot(geofences: Iterable[Geofence],
                   *,
                   version: int,
                   cell_size_deg: float,
                   max_cells_per_geofence: int) -> IndexSnapshot:
    """
    지오펜스 목록으로 새 스냅샷을 만듭니다.

    같은 ID가 여러 번 나오면 마지막 항목이 남습니다. 마지막 항목이
    비활성이면 해당 ID는 인덱싱되지 않습니다.

    Raises:
        InvalidGeometryError: 형상 데이터가 잘못된 경우
    """
    latest: Dict[str, Geofence] = {}
    for geofence in geofences:
        _check_geofence(geofence)
        latest[geofence.id] = geofence
    by_id = {gid: g for gid, g in latest.items() if g.active}

    bboxes: Dict[str, BBox] = {}
    cells: Dict[Cell, List[str]] = {}
    oversized: List[str] = []

    for geofence_id, geofence in by_id.items():
        bbox = shape_bounding_box(geofence)
        bboxes[geofence_id] = bbox
        min_lat, min_lon, max_lat, max_lon = bbox

        # 경계 상자와 같은 여유를 두어 셀 경계의 부동소수 오차를 흡수
        row0 = math.floor((min_lat - BBOX_PAD) / cell_size_deg)
        row1 = math.floor((max_lat + BBOX_PAD) / cell_size_deg)
        col0 = math.floor((min_lon - BBOX_PAD) / cell_size_deg)
        col1 = math.floor((max_lon + BBOX_PAD) / cell_size_deg)

        if (row1 - row0 + 1) * (col1 - col0 + 1) > max_cells_per_geofence:
            oversized.append(geofence_id)
            continue

        for row in range(row0, row1 + 1):
            for col in range(col0, col1 + 1):
                cells.setdefault((row, col), []).append(geofence_id)

    return IndexSnapshot(
        version=version,
        cell_size_deg=cell_size_deg,
        geofences=by_id,
        bboxes=bboxes,
        cells={cell: tuple(ids) for cell, ids in cells.items()},
        oversized=tuple(oversized),
    )


class GeofenceIndex:
    """읽기 위주 지오펜스 공간 인덱스"""

    def __init__(self,
                 geofences: Optional[Iterable[Geofence]] = None,
                 *,
                 cell_size_deg: float = 0.5,
                 max_cells_per_geofence: int = 4096,
                 max_workers: int = 4,
                 parallel_threshold: int = 64):
        """
        초기화합니다.

        Args:
            geofences: 초기 지오펜스 목록
            cell_size_deg: 그리드 셀 크기 (도)
            max_cells_per_geofence: 셀 버킷에 넣을 최대 셀 수
            max_workers: 병렬 평가 워커 수
            parallel_threshold: 병렬 평가를 시작할 후보 수

        포함 판정은 순수 파이썬 코드라 GIL 때문에 스레드 풀이 실제 CPU 병렬성을
        주지는 않습니다. 워커 풀은 후보 평가를 호출 스레드 밖으로 나누는 용도이며
        max_workers=1이면 항상 호출 스레드에서 평가합니다.
        """
        if cell_size_deg <= 0:
            raise ValueError("cell_size_deg must be positive")

        self.cell_size_deg = cell_size_deg
        self.max_cells_per_geofence = max_cells_per_geofence
        self.max_workers = max(1, max_workers)
        self.parallel_threshold = max(1, parallel_threshold)

        self._write_lock = threading.Lock()
        self._executor_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._loaded = False
        self._snapshot = IndexSnapshot(version=0, cell_size_deg=cell_size_deg)

        if geofences is not None:
            self.rebuild(geofences)

    @property
    def snapshot(self) -> IndexSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    @property
    def loaded(self) -> bool:
        """한 번 이상 빌드되었는지 여부"""
        return self._loaded

    def __len__(self) -> int:
        return len(self._snapshot.geofences)

    def get(self, geofence_id: str) -> Optional[Geofence]:
        return self._snapshot.geofences.get(geofence_id)

    def _publish(self, geofences: Iterable[Geofence]) -> IndexSnapshot:
        # 호출자가 _write_lock을 보유해야 함
        snapshot = build_snapshot(
            geofences,
            version=self._snapshot.version + 1,
            cell_size_deg=self.cell_size_deg,
            max_cells_per_geofence=self.max_cells_per_geofence,
        )
        self._snapshot = snapshot
        self._loaded = True

        metrics.indexed_geofences.set(len(snapshot.geofences))
        metrics.index_version.set(snapshot.version)
        log.debug("인덱스 스냅샷 게시",
                  version=snapshot.version,
                  geofences=len(snapshot.geofences),
                  oversized=len(snapshot.oversized))
        return snapshot

    def rebuild(self, geofences: Iterable[Geofence]) -> int:
        """
        지오펜스 전체를 교체합니다.

        Returns:
            인덱싱된 지오펜스 수

        Raises:
            InvalidGeometryError: 형상이 잘못된 경우 (이전 스냅샷 유지)
        """
        with self._write_lock:
            return len(self._publish(list(geofences)).geofences)

    def upsert(self, geofence: Geofence) -> None:
        """지오펜스 하나를 추가하거나 새 버전으로 교체합니다. 비활성 버전이면 인덱스에서 빠집니다."""
        with self._write_lock:
            items = dict(self._snapshot.geofences)
            items[geofence.id] = geofence
            self._publish(items.values())

    def remove(self, geofence_id: str) -> bool:
        """지오펜스를 제거합니다. 존재했으면 True"""
        with self._write_lock:
            if geofence_id not in self._snapshot.geofences:
                return False
            items = {k: v for k, v in self._snapshot.geofences.items() if k != geofence_id}
            self._publish(items.values())
            return True

    async def refresh(self, repository) -> int:
        """
        저장소의 활성 지오펜스로 인덱스를 다시 빌드합니다.

        Args:
            repository: GeofenceRepositoryPort 구현체

        Returns:
            인덱싱된 지오펜스 수
        """
        geofences = await repository.list_active()
        count = self.rebuild(geofences)
        log.info("지오펜스 인덱스 갱신 완료", geofences=count, version=self.version)
        return count

    def query(self, point: Point) -> Set[str]:
        """
        점을 포함하는 모든 지오펜스 ID를 반환합니다.

        Args:
            point: 조회할 점

        Returns:
            중복 없는 지오펜스 ID 집합 (순서 보장 없음)

        Raises:
            InvalidGeometryError: 점이 잘못된 경우

        동기 호출입니다. 이벤트 루프에서 후보가 많은 인덱스를 조회할 때는
        asyncio.to_thread로 감싸 호출합니다.
        """
        _check_point(point)
        snapshot = self._snapshot
        candidate_ids = snapshot.candidates(point)
        if not candidate_ids:
            return set()

        geofences = [snapshot.geofences[gid] for gid in candidate_ids]
        if len(geofences) >= self.parallel_threshold and self.max_workers > 1:
            hits = list(self._get_executor().map(lambda g: contains(g, point), geofences))
        else:
            hits = [contains(g, point) for g in geofences]

        return {g.id for g, hit in zip(geofences, hits) if hit}

    def _get_executor(self) -> ThreadPoolExecutor:
        # 쓰기 잠금과 분리되어 재빌드 중에도 조회가 대기하지 않음
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="geofence-index",
                )
            return self._executor

    def close(self) -> None:
        """병렬 평가 워커를 정리합니다."""
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None
