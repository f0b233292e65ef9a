"""
Common 모듈 단위 테스트

이 모듈은 지리 유틸리티와 재시도 로직의 기능을 테스트합니다.
"""

import asyncio
import math
from unittest.mock import patch

import pytest

from geoalert.common.geo import (
    EARTH_RADIUS_M, haversine_distance, point_in_polygon, point_on_segment,
    point_on_polygon_boundary, calculate_bounding_box, circle_bounding_box,
    bbox_contains, validate_coordinates,
)
from geoalert.common.retry import backoff_delay, exponential_backoff, retry_with_backoff


class TestHaversineDistance:
    """Haversine 거리 계산 테스트 (미터)"""

    def test_haversine_distance_same_point(self):
        """같은 지점 간 거리 테스트"""
        assert haversine_distance(37.5665, 126.9780, 37.5665, 126.9780) == 0.0

    def test_haversine_distance_seoul_to_busan(self):
        """서울에서 부산까지 거리 테스트 (약 325km)"""
        distance = haversine_distance(37.5665, 126.9780, 35.1796, 129.0756)
        assert 320_000 <= distance <= 330_000

    def test_haversine_distance_one_degree_on_equator(self):
        """적도상 경도 1도는 약 111km"""
        distance = haversine_distance(0, 0, 0, 1)
        assert 111_000 <= distance <= 111_400

    def test_haversine_distance_small_latitude_step(self):
        """위도 0.01도는 약 1.1km"""
        distance = haversine_distance(40.0, -73.0, 40.01, -73.0)
        assert 1_100 <= distance <= 1_120

    def test_haversine_distance_antipodes(self):
        """지구 반대편은 반둘레"""
        distance = haversine_distance(0, 0, 0, 180)
        assert distance == pytest.approx(math.pi * EARTH_RADIUS_M)

    def test_haversine_distance_symmetric(self):
        """거리는 대칭"""
        a = haversine_distance(40.0, -73.0, 40.5, -72.5)
        b = haversine_distance(40.5, -72.5, 40.0, -73.0)
        assert a == pytest.approx(b)


class TestPointInPolygon:
    """점이 폴리곤 내부에 있는지 테스트"""

    def test_point_in_polygon_inside(self, square_polygon):
        """폴리곤 내부의 점 테스트"""
        assert point_in_polygon((126.5, 37.5), square_polygon) is True

    def test_point_in_polygon_outside(self, square_polygon):
        """폴리곤 외부의 점 테스트"""
        assert point_in_polygon((125.5, 37.5), square_polygon) is False
        assert point_in_polygon((126.5, 38.5), square_polygon) is False

    def test_point_on_edge_is_inside(self, square_polygon):
        """변 위의 점은 내부로 판정"""
        assert point_in_polygon((126.5, 37.0), square_polygon) is True
        assert point_in_polygon((127.0, 37.5), square_polygon) is True

    def test_point_on_vertex_is_inside(self, square_polygon):
        """꼭짓점은 내부로 판정"""
        for vertex in square_polygon:
            assert point_in_polygon(vertex, square_polygon) is True

    def test_point_on_edge_exclusive(self, square_polygon):
        """include_boundary=False이면 경계는 외부"""
        assert point_in_polygon((126.5, 37.0), square_polygon, include_boundary=False) is False

    def test_concave_notch_is_outside(self, u_shaped_polygon):
        """U자 폴리곤의 오목한 홈은 외부"""
        assert point_in_polygon((1.5, 2.0), u_shaped_polygon) is False

    def test_concave_arms_are_inside(self, u_shaped_polygon):
        """U자 폴리곤의 양 팔과 바닥은 내부"""
        assert point_in_polygon((0.5, 2.0), u_shaped_polygon) is True
        assert point_in_polygon((2.5, 2.0), u_shaped_polygon) is True
        assert point_in_polygon((1.5, 0.5), u_shaped_polygon) is True

    def test_ray_through_reflex_vertices(self, u_shaped_polygon):
        """광선이 오목 꼭짓점을 지나도 올바르게 판정"""
        assert point_in_polygon((0.5, 1.0), u_shaped_polygon) is True
        assert point_in_polygon((-0.5, 1.0), u_shaped_polygon) is False

    def test_reflex_edge_is_boundary(self, u_shaped_polygon):
        """홈 바닥 변 위의 점은 경계로 포함"""
        assert point_in_polygon((1.5, 1.0), u_shaped_polygon) is True

    def test_degenerate_polygon(self):
        """꼭짓점이 3개 미만이면 항상 외부"""
        assert point_in_polygon((0.0, 0.0), [(0.0, 0.0), (1.0, 1.0)]) is False


class TestBoundaryHelpers:
    """경계 판정 보조 함수 테스트"""

    def test_point_on_segment(self):
        assert point_on_segment((0.5, 0.5), (0.0, 0.0), (1.0, 1.0)) is True
        assert point_on_segment((1.5, 1.5), (0.0, 0.0), (1.0, 1.0)) is False
        assert point_on_segment((0.5, 0.6), (0.0, 0.0), (1.0, 1.0)) is False

    def test_point_on_polygon_boundary_closing_edge(self, square_polygon):
        """마지막 꼭짓점과 첫 꼭짓점을 잇는 변도 경계"""
        assert point_on_polygon_boundary((126.0, 37.5), square_polygon) is True


class TestBoundingBoxes:
    """경계 상자 테스트"""

    def test_polygon_bounding_box(self, square_polygon):
        assert calculate_bounding_box(square_polygon) == (37.0, 126.0, 38.0, 127.0)

    def test_empty_polygon_bounding_box(self):
        assert calculate_bounding_box([]) == (0.0, 0.0, 0.0, 0.0)

    def test_circle_bounding_box_contains_circle_extremes(self):
        """원의 동서남북 끝점이 경계 상자 안에 있어야 함"""
        lat, lon, radius = 60.0, 10.0, 50_000.0
        bbox = circle_bounding_box(lat, lon, radius)
        min_lat, min_lon, max_lat, max_lon = bbox

        assert haversine_distance(lat, lon, max_lat, lon) == pytest.approx(radius)
        # 고위도에서는 경도 반폭이 위도 반폭보다 넓다
        assert (max_lon - lon) > (max_lat - lat)
        assert bbox_contains(bbox, lat, lon)

    def test_circle_bounding_box_reaching_pole(self):
        """극을 덮는 원은 경도 전체 범위"""
        bbox = circle_bounding_box(89.9, 0.0, 50_000.0)
        assert bbox[1] == -180.0 and bbox[3] == 180.0
        assert bbox[2] == 90.0


class TestValidateCoordinates:
    """좌표 유효성 테스트"""

    def test_valid(self):
        assert validate_coordinates(0, 0) is True
        assert validate_coordinates(90, 180) is True
        assert validate_coordinates(-90, -180) is True

    def test_invalid(self):
        assert validate_coordinates(90.1, 0) is False
        assert validate_coordinates(0, 180.1) is False
        assert validate_coordinates(float("nan"), 0) is False
        assert validate_coordinates(0, float("inf")) is False


class TestRetry:
    """재시도 로직 테스트"""

    def test_backoff_delay_without_jitter(self):
        assert backoff_delay(1, 0.5, 10.0, jitter=False) == 0.5
        assert backoff_delay(3, 0.5, 10.0, jitter=False) == 2.0
        assert backoff_delay(10, 0.5, 10.0, jitter=False) == 10.0

    def test_backoff_delay_with_jitter_bounds(self):
        for _ in range(20):
            delay = backoff_delay(2, 1.0, 10.0, jitter=True)
            assert 1.0 <= delay <= 2.0

    @pytest.mark.asyncio
    async def test_exponential_backoff_sleeps(self):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        with patch("geoalert.common.retry.asyncio.sleep", new=fake_sleep):
            await exponential_backoff(3, 1.0, 60.0)
        assert delays == [4.0]

    @pytest.mark.asyncio
    async def test_retry_succeeds_after_failures(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("boom")
            return "ok"

        result = await retry_with_backoff(flaky, max_retries=3, base_delay=0, max_delay=0)
        assert result == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_retry_exhausted_raises_last(self):
        calls = []

        async def always_fails():
            calls.append(1)
            raise ConnectionError(f"fail {len(calls)}")

        with pytest.raises(ConnectionError, match="fail 3"):
            await retry_with_backoff(always_fails, max_retries=2, base_delay=0, max_delay=0)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_retry_non_matching_exception_not_retried(self):
        calls = []

        async def bad():
            calls.append(1)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            await retry_with_backoff(bad, max_retries=5, base_delay=0, max_delay=0,
                                     retry_on=(ConnectionError,))
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retry_on_retry_callback(self):
        seen = []

        async def flaky():
            if len(seen) < 2:
                raise TimeoutError()
            return 42

        result = await retry_with_backoff(
            flaky, max_retries=3, base_delay=0, max_delay=0,
            retry_on=(TimeoutError,),
            on_retry=lambda attempt, exc: seen.append((attempt, type(exc))),
        )
        assert result == 42
        assert seen == [(1, TimeoutError), (2, TimeoutError)]
