"""
Geographic utilities for geofence alerting.

This module provides geographic calculations including
great-circle distance, point-in-polygon testing with an
inclusive boundary, and bounding boxes for spatial bucketing.
"""

import math
from typing import Sequence, Tuple

# 평균 지구 반지름 (미터)
EARTH_RADIUS_M = 6371008.8

# 경계 위 판정 허용 오차 (도 단위 외적)
BOUNDARY_EPSILON = 1e-12

# 경계 상자 포함 판정 여유 (도)
BBOX_PAD = 1e-9

# (min_lat, min_lon, max_lat, max_lon)
BBox = Tuple[float, float, float, float]


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 지점 간의 Haversine 거리를 계산합니다 (미터).

    Args:
        lat1: 첫 번째 지점의 위도
        lon1: 첫 번째 지점의 경도
        lat2: 두 번째 지점의 위도
        lon2: 두 번째 지점의 경도

    Returns:
        두 지점 간의 거리 (미터)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    # 부동소수 오차로 1을 넘는 경우 방지
    c = 2 * math.asin(math.sqrt(min(1.0, a)))

    return c * EARTH_RADIUS_M


def point_on_segment(point: Tuple[float, float],
                     start: Tuple[float, float],
                     end: Tuple[float, float]) -> bool:
    """점이 선분 위에 있는지 확인합니다 (끝점 포함)."""
    px, py = point
    x1, y1 = start
    x2, y2 = end

    cross = (px - x1) * (y2 - y1) - (py - y1) * (x2 - x1)
    if abs(cross) > BOUNDARY_EPSILON:
        return False

    return (min(x1, x2) - BOUNDARY_EPSILON <= px <= max(x1, x2) + BOUNDARY_EPSILON and
            min(y1, y2) - BOUNDARY_EPSILON <= py <= max(y1, y2) + BOUNDARY_EPSILON)


def point_on_polygon_boundary(point: Tuple[float, float],
                              polygon: Sequence[Tuple[float, float]]) -> bool:
    """점이 폴리곤 경계(변 또는 꼭짓점) 위에 있는지 확인합니다."""
    n = len(polygon)
    for i in range(n):
        if point_on_segment(point, polygon[i], polygon[(i + 1) % n]):
            return True
    return False


def point_in_polygon(point: Tuple[float, float],
                     polygon: Sequence[Tuple[float, float]],
                     *,
                     include_boundary: bool = True) -> bool:
    """
    점이 폴리곤 내부에 있는지 Ray casting 알고리즘으로 확인합니다.

    폴리곤은 암묵적으로 닫혀 있으며, 오목 폴리곤도 처리합니다.
    경계 위의 점은 include_boundary가 True이면 내부로 판정합니다.

    Args:
        point: 확인할 점 (경도, 위도)
        polygon: 폴리곤의 꼭짓점들 [(경도, 위도), ...]
        include_boundary: 경계 포함 여부

    Returns:
        점이 폴리곤 내부에 있으면 True, 외부에 있으면 False
    """
    if len(polygon) < 3:
        return False

    if point_on_polygon_boundary(point, polygon):
        return include_boundary

    x, y = point
    n = len(polygon)
    inside = False

    p1x, p1y = polygon[0]
    for i in range(1, n + 1):
        p2x, p2y = polygon[i % n]
        # 반열린 구간 규칙으로 꼭짓점을 한 번만 센다
        if (p1y > y) != (p2y > y):
            xinters = (y - p1y) * (p2x - p1x) / (p2y - p1y) + p1x
            if x < xinters:
                inside = not inside
        p1x, p1y = p2x, p2y

    return inside


def calculate_bounding_box(polygon: Sequence[Tuple[float, float]]) -> BBox:
    """
    폴리곤의 경계 상자를 계산합니다.

    Args:
        polygon: 폴리곤의 꼭짓점들 [(경도, 위도), ...]

    Returns:
        (min_lat, min_lon, max_lat, max_lon)
    """
    if not polygon:
        return (0.0, 0.0, 0.0, 0.0)

    lons = [p[0] for p in polygon]
    lats = [p[1] for p in polygon]

    return (min(lats), min(lons), max(lats), max(lons))


def circle_bounding_box(lat: float, lon: float, radius_m: float) -> BBox:
    """
    원형 영역의 경계 상자를 구면 기준으로 계산합니다.

    경도 반폭은 asin(sin(d) / cos(lat))로 계산하며,
    원이 극에 닿으면 경도 전체 범위로 확장합니다.

    Args:
        lat: 중심 위도
        lon: 중심 경도
        radius_m: 반지름 (미터)

    Returns:
        (min_lat, min_lon, max_lat, max_lon)
    """
    angular = radius_m / EARTH_RADIUS_M  # radians
    delta_lat = math.degrees(angular)

    min_lat = lat - delta_lat
    max_lat = lat + delta_lat

    if min_lat <= -90.0 or max_lat >= 90.0:
        return (max(min_lat, -90.0), -180.0, min(max_lat, 90.0), 180.0)

    ratio = math.sin(angular) / math.cos(math.radians(lat))
    if ratio >= 1.0:
        return (min_lat, -180.0, max_lat, 180.0)

    delta_lon = math.degrees(math.asin(ratio))
    return (
        min_lat,
        max(lon - delta_lon, -180.0),
        max_lat,
        min(lon + delta_lon, 180.0),
    )


def bbox_contains(bbox: BBox, lat: float, lon: float, pad: float = BBOX_PAD) -> bool:
    """경계 상자에 점이 포함되는지 확인합니다 (경계 포함)."""
    min_lat, min_lon, max_lat, max_lon = bbox
    return (min_lat - pad <= lat <= max_lat + pad and
            min_lon - pad <= lon <= max_lon + pad)


def validate_coordinates(lat: float, lon: float) -> bool:
    """
    좌표가 유효한지 확인합니다.

    Args:
        lat: 위도
        lon: 경도

    Returns:
        좌표가 유한하고 범위 내이면 True
    """
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180
