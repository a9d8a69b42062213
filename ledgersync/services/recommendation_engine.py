"""
Recommendation Engine

Derives schedule recommendations from sync history. Every analysis pass
replaces the active set wholesale; a provider needs RECOMMENDATION_MIN_SAMPLES
entries before it gets any.

Rules (evaluated independently, so one provider can get several):
    performance        success rate < 85%          -> max(ceil(1.5 x interval), 60), business hours on
    cost_optimization  avg volume < 15, interval < 90 -> 120
    interval           avg volume > 60, interval > 30 -> 30, business hours off
    timing             > 80% of runs inside business hours and business_hours_only off
"""

import logging
import math
from collections import Counter
from typing import Iterable, List, Optional

from ledgersync.core.config import Settings, get_settings
from ledgersync.core.enums import RecommendationType
from ledgersync.core.exceptions import RecommendationNotFoundError
from ledgersync.core.utils import Clock, is_business_hours, local_hour, utc_now
from ledgersync.schemas.schedule import DataInsights, ScheduleConfig, SyncRecommendation
from ledgersync.services.sync_history import SyncHistory

logger = logging.getLogger(__name__)

PERFORMANCE_SUCCESS_THRESHOLD = 0.85
LOW_VOLUME = 15
LOW_VOLUME_MAX_INTERVAL = 90
LOW_VOLUME_INTERVAL = 120
HIGH_VOLUME = 60
HIGH_VOLUME_INTERVAL = 30
BUSINESS_HOURS_SHARE = 0.8


class RecommendationEngine:

    def __init__(self, history: SyncHistory, settings: Optional[Settings] = None, clock: Clock = utc_now):
        self.history = history
        self.settings = settings or get_settings()
        self.clock = clock
        self._recommendations: List[SyncRecommendation] = []

    @property
    def recommendations(self) -> List[SyncRecommendation]:
        return list(self._recommendations)

    def analyze(self, configs: Iterable[ScheduleConfig]) -> List[SyncRecommendation]:
        recommendations: List[SyncRecommendation] = []
        for config in configs:
            recommendations.extend(self._analyze_provider(config))

        recommendations.sort(key=lambda r: r.confidence, reverse=True)
        self._recommendations = recommendations
        logger.info(f"Generated {len(recommendations)} schedule recommendations")
        return list(recommendations)

    def find(self, provider: str, recommendation_type: str) -> SyncRecommendation:
        recommendation_type = RecommendationType(recommendation_type).value
        for recommendation in self._recommendations:
            if recommendation.provider == provider and recommendation.type == recommendation_type:
                return recommendation
        raise RecommendationNotFoundError(f"Recommendation not found for {provider} - {recommendation_type}")

    def discard(self, provider: str, recommendation_type: str) -> None:
        recommendation_type = RecommendationType(recommendation_type).value
        self._recommendations = [
            r for r in self._recommendations
            if not (r.provider == provider and r.type == recommendation_type)
        ]

    def _analyze_provider(self, config: ScheduleConfig) -> List[SyncRecommendation]:
        entries = self.history.entries(config.provider)
        if len(entries) < self.settings.RECOMMENDATION_MIN_SAMPLES:
            return []

        count = len(entries)
        avg_duration = sum(e.duration_ms for e in entries) / count
        success_rate = sum(1 for e in entries if e.success) / count
        avg_volume = sum(e.data_volume for e in entries) / count

        tz = self.settings.BUSINESS_TIMEZONE
        hour_counts = Counter(local_hour(e.timestamp, tz) for e in entries)
        peak_hours = [f"{hour}:00" for hour, _ in sorted(hour_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:3]]

        insights = DataInsights(
            avg_data_volume=round(avg_volume, 1),
            peak_sync_times=peak_hours,
            failure_rate=round((1 - success_rate) * 100),
        )
        interval = config.interval_minutes
        estimated_minutes = math.ceil(avg_duration / 60000)

        def build(rec_type, recommended, reason, confidence, business_hours, savings):
            return SyncRecommendation(
                provider=config.provider,
                type=rec_type,
                recommended_interval=recommended,
                current_interval=interval,
                reason=reason,
                confidence=confidence,
                suggested_business_hours=business_hours,
                estimated_duration_minutes=estimated_minutes,
                potential_savings=savings,
                data_insights=insights,
            )

        results = []

        if success_rate < PERFORMANCE_SUCCESS_THRESHOLD:
            recommended = max(math.ceil(interval * 1.5), 60)
            confidence = min(95, 60 + round((PERFORMANCE_SUCCESS_THRESHOLD - success_rate) * 200))
            results.append(build(
                RecommendationType.PERFORMANCE,
                recommended,
                f"Success rate is {success_rate * 100:.1f}%. Increasing interval from {interval} "
                f"to {recommended} minutes may improve reliability.",
                confidence,
                True,
                "Reduces API failures by ~30%",
            ))

        if avg_volume < LOW_VOLUME and interval < LOW_VOLUME_MAX_INTERVAL:
            results.append(build(
                RecommendationType.COST_OPTIMIZATION,
                LOW_VOLUME_INTERVAL,
                f"Low data volume detected ({avg_volume:.1f} records/sync). Reducing frequency from "
                f"{interval} to {LOW_VOLUME_INTERVAL} minutes recommended for cost savings.",
                75,
                config.business_hours_only,
                "Reduces API costs by ~40% and server load",
            ))

        if avg_volume > HIGH_VOLUME and interval > HIGH_VOLUME_INTERVAL:
            results.append(build(
                RecommendationType.INTERVAL,
                HIGH_VOLUME_INTERVAL,
                f"High data volume detected ({avg_volume:.1f} records/sync). Increasing frequency from "
                f"{interval} to {HIGH_VOLUME_INTERVAL} minutes recommended for fresher data.",
                90,
                False,
                "Improves data freshness by 50%",
            ))

        in_hours = sum(
            1 for e in entries
            if is_business_hours(e.timestamp, tz, self.settings.BUSINESS_HOURS_START, self.settings.BUSINESS_HOURS_END)
        )
        if in_hours > count * BUSINESS_HOURS_SHARE and not config.business_hours_only:
            results.append(build(
                RecommendationType.TIMING,
                interval,
                f"{in_hours / count * 100:.1f}% of sync activity occurs during business hours. "
                f"Enable business hours only mode to optimize resource usage.",
                70,
                True,
                "Reduces off-hours processing by 60%",
            ))

        return results
