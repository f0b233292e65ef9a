# geoalert/main.py
import os, asyncio, signal
from typing import Optional
import uvicorn
from geoalert.settings import Settings
from geoalert.observability.health import create_app
from geoalert.observability.logging_setup import setup_logging_dev, get_logger
from geoalert.adapters.storage import SQLiteAlertStore, SQLiteGeofenceStore, SQLiteIncidentStore
from geoalert.core.dispatcher import AlertDispatcher
from geoalert.core.errors import GeoAlertError
from geoalert.core.geofence_index import GeofenceIndex
from geoalert.orchestrators.alert_service import GeofenceAlertService

log = get_logger("geoalert.main")

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def build_settings() -> Settings:
    s = Settings()

    # 저장소
    s.storage.db_path = os.getenv("GEOALERT_DB_PATH", s.storage.db_path)

    # 인덱스
    s.index.cell_size_deg = float(os.getenv("INDEX_CELL_SIZE_DEG", s.index.cell_size_deg))
    s.index.max_workers = int(os.getenv("INDEX_MAX_WORKERS", s.index.max_workers))

    # 신뢰성
    s.reliability.alert_create_max_retries = int(os.getenv("ALERT_MAX_RETRIES", s.reliability.alert_create_max_retries))
    s.reliability.storage_timeout_sec = float(os.getenv("STORAGE_TIMEOUT_SEC", s.reliability.storage_timeout_sec))
    s.reliability.dispatch_concurrency = int(os.getenv("DISPATCH_CONCURRENCY", s.reliability.dispatch_concurrency))

    # 매칭
    s.matching.refresh_on_reevaluate = _b("REFRESH_ON_REEVALUATE", s.matching.refresh_on_reevaluate)
    s.matching.index_refresh_interval_sec = float(os.getenv("INDEX_REFRESH_INTERVAL_SEC", s.matching.index_refresh_interval_sec))

    # 관측성
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.http_port = int(os.getenv("METRICS_PORT", s.observability.http_port))
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)

    return s

async def build_service(s: Settings) -> GeofenceAlertService:
    """설정으로 저장소, 인덱스, 발송기를 연결한 서비스를 만듭니다."""
    busy = s.reliability.storage_timeout_sec
    incidents = SQLiteIncidentStore(s.storage.db_path, busy_timeout_sec=busy); await incidents.init()
    geofences = SQLiteGeofenceStore(s.storage.db_path, busy_timeout_sec=busy); await geofences.init()
    alerts = SQLiteAlertStore(s.storage.db_path, busy_timeout_sec=busy); await alerts.init()

    index = GeofenceIndex(
        cell_size_deg=s.index.cell_size_deg,
        max_cells_per_geofence=s.index.max_cells_per_geofence,
        max_workers=s.index.max_workers,
        parallel_threshold=s.index.parallel_threshold,
    )
    dispatcher = AlertDispatcher(
        alerts,
        max_retries=s.reliability.alert_create_max_retries,
        backoff_initial_sec=s.reliability.backoff_initial_sec,
        backoff_max_sec=s.reliability.backoff_max_sec,
        timeout_sec=s.reliability.storage_timeout_sec,
        concurrency=s.reliability.dispatch_concurrency,
    )
    return GeofenceAlertService(
        incidents, geofences, alerts, index,
        dispatcher=dispatcher,
        refresh_on_reevaluate=s.matching.refresh_on_reevaluate,
    )

async def refresh_loop(service: GeofenceAlertService, interval_sec: float) -> None:
    """주기적으로 지오펜스 인덱스를 갱신합니다."""
    while True:
        try:
            await service.refresh_geofences()
        except GeoAlertError as e:
            # 실패 시 이전 스냅샷이 계속 사용됨
            log.error("지오펜스 인덱스 갱신 실패", error_code=e.error_code, error=e.message)
        except Exception as e:
            log.exception("지오펜스 인덱스 갱신 중 예기치 않은 오류", error=repr(e))
        await asyncio.sleep(interval_sec)

async def start_http(settings: Settings, service: GeofenceAlertService) -> Optional[asyncio.Task]:
    if not settings.observability.metrics_enabled: return None
    app = create_app(settings, service.index)
    return asyncio.create_task(uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=settings.observability.http_port, log_level="info")
    ).serve())

async def main():
    s = build_settings()
    setup_logging_dev(s.observability.log_level)
    log.info("설정 로드 완료", db_path=s.storage.db_path)

    service = await build_service(s)
    log.info("서비스 생성 완료")

    http_task = await start_http(s, service)
    if http_task:
        log.info("HTTP 서버 시작됨", port=s.observability.http_port)

    stop = asyncio.Future()
    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
            except NotImplementedError: pass
    except RuntimeError: pass

    refresh_task = asyncio.create_task(refresh_loop(service, s.matching.index_refresh_interval_sec))
    await stop
    refresh_task.cancel()
    if http_task: http_task.cancel()
    service.index.close()
    log.info("종료")

if __name__ == "__main__":
    asyncio.run(main())
