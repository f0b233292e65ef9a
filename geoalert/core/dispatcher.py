"""
Alert dispatch with deduplication and per-geofence failure isolation.

Each (incident, geofence) pair goes through the repository's atomic
create_if_absent primitive, so re-running dispatch for the same incident
never creates a duplicate. Transient failures and timeouts are retried a
bounded number of times; whatever still fails is reported for that
geofence only, and the remaining geofences are processed normally.
"""

import asyncio
import time
from typing import Iterable, List, Optional

from geoalert.common.retry import retry_with_backoff
from geoalert.core.errors import StorageTransientError
from geoalert.core.models import AlertCreation, AlertStatus, MatchResult
from geoalert.observability import metrics
from geoalert.observability.logging_setup import get_logger
from geoalert.ports.alerts import AlertRepositoryPort

log = get_logger("geoalert.dispatcher")


class _DispatchCancelled(Exception):
    pass


class AlertDispatcher:
    """매칭 결과를 경보로 변환합니다"""

    def __init__(self,
                 alerts: AlertRepositoryPort,
                 *,
                 max_retries: int = 3,
                 backoff_initial_sec: float = 0.1,
                 backoff_max_sec: float = 2.0,
                 timeout_sec: float = 5.0,
                 concurrency: int = 8,
                 jitter: bool = True):
        """
        초기화합니다.

        Args:
            alerts: 경보 저장소 포트
            max_retries: 일시적 오류 최대 재시도 횟수
            backoff_initial_sec: 백오프 초기 지연 (초)
            backoff_max_sec: 백오프 최대 지연 (초)
            timeout_sec: 저장소 호출 1회 타임아웃 (초)
            concurrency: 동시에 처리할 지오펜스 수
            jitter: 백오프 지터 적용 여부
        """
        self.alerts = alerts
        self.max_retries = max_retries
        self.backoff_initial = backoff_initial_sec
        self.backoff_max = backoff_max_sec
        self.timeout = timeout_sec
        self.concurrency = max(1, concurrency)
        self.jitter = jitter

    async def dispatch(self,
                       incident_id: str,
                       geofence_ids: Iterable[str],
                       *,
                       cancel_event: Optional[asyncio.Event] = None) -> List[MatchResult]:
        """
        지오펜스마다 경보를 생성합니다.

        이미 경보가 있는 쌍은 already_alerted로 보고합니다. 개별 실패는
        나머지 처리를 중단시키지 않으며 결과 목록에 failed로 기록됩니다.
        cancel_event가 설정되면 새 저장소 호출을 하지 않고 남은 항목을
        skipped로 보고합니다. 이미 생성된 경보는 되돌리지 않습니다.

        Args:
            incident_id: 사건 ID
            geofence_ids: 매칭된 지오펜스 ID들 (중복은 한 번만 처리)
            cancel_event: 협조적 취소 이벤트

        Returns:
            입력 순서의 지오펜스별 결과 목록
        """
        unique_ids = list(dict.fromkeys(geofence_ids))
        if not unique_ids:
            return []

        start = time.perf_counter()
        sem = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(*(
            self._dispatch_one(incident_id, geofence_id, sem, cancel_event)
            for geofence_id in unique_ids
        ))
        metrics.dispatch_seconds.observe(time.perf_counter() - start)

        log.info("경보 발송 완료",
                 incident_id=incident_id,
                 total=len(results),
                 created=sum(1 for r in results if r.status == AlertStatus.CREATED),
                 duplicate=sum(1 for r in results if r.status == AlertStatus.ALREADY_ALERTED),
                 failed=sum(1 for r in results if r.status == AlertStatus.FAILED),
                 skipped=sum(1 for r in results if r.status == AlertStatus.SKIPPED))
        return list(results)

    async def _dispatch_one(self,
                            incident_id: str,
                            geofence_id: str,
                            sem: asyncio.Semaphore,
                            cancel_event: Optional[asyncio.Event]) -> MatchResult:
        attempts = 0

        async def attempt() -> AlertCreation:
            nonlocal attempts
            if cancel_event is not None and cancel_event.is_set():
                raise _DispatchCancelled()
            attempts += 1
            return await asyncio.wait_for(
                self.alerts.create_if_absent(incident_id, geofence_id),
                timeout=self.timeout,
            )

        def on_retry(attempt_no: int, exc: BaseException) -> None:
            metrics.alert_create_retries.inc()
            log.warning("경보 생성 재시도",
                        incident_id=incident_id,
                        geofence_id=geofence_id,
                        attempt=attempt_no,
                        error=type(exc).__name__)

        async with sem:
            try:
                creation = await retry_with_backoff(
                    attempt,
                    max_retries=self.max_retries,
                    base_delay=self.backoff_initial,
                    max_delay=self.backoff_max,
                    jitter=self.jitter,
                    retry_on=(StorageTransientError, asyncio.TimeoutError),
                    on_retry=on_retry,
                )
            except _DispatchCancelled:
                metrics.alert_failures.labels(reason="cancelled").inc()
                return MatchResult(geofence_id=geofence_id, matched=False,
                                   status=AlertStatus.SKIPPED, reason="cancelled",
                                   attempts=attempts)
            except asyncio.TimeoutError:
                return self._failure(incident_id, geofence_id, "timeout",
                                     f"storage timeout after {attempts} attempts", attempts)
            except StorageTransientError as e:
                return self._failure(incident_id, geofence_id, "transient",
                                     f"transient storage error: {e.message}", attempts)
            except Exception as e:
                # 한 지오펜스의 실패가 나머지 처리를 막지 않도록 결과로 보고
                return self._failure(incident_id, geofence_id, "error",
                                     f"{type(e).__name__}: {e}", attempts)

        if creation.created:
            metrics.alerts_created.inc()
            log.info("경보 생성",
                     incident_id=incident_id,
                     geofence_id=geofence_id,
                     alert_id=creation.alert.id)
            status = AlertStatus.CREATED
        else:
            metrics.alerts_duplicate.inc()
            log.info("중복 경보 억제",
                     incident_id=incident_id,
                     geofence_id=geofence_id,
                     alert_id=creation.alert.id)
            status = AlertStatus.ALREADY_ALERTED

        return MatchResult(geofence_id=geofence_id, matched=True, status=status,
                           alert_id=creation.alert.id, attempts=attempts)

    def _failure(self, incident_id: str, geofence_id: str, kind: str,
                 reason: str, attempts: int) -> MatchResult:
        metrics.alert_failures.labels(reason=kind).inc()
        log.error("경보 생성 실패",
                  incident_id=incident_id,
                  geofence_id=geofence_id,
                  kind=kind,
                  reason=reason,
                  attempts=attempts)
        return MatchResult(geofence_id=geofence_id, matched=False,
                           status=AlertStatus.FAILED, reason=reason, attempts=attempts)
