# khorders/services/fulfillment_dates.py
"""
履约日计算：

- 每种履约方式只允许一个固定工作日（默认 pickup=周六，shipping=周五）
- 结果永远在 now 的日期之后（至少提前 1 天）
- pickup 截单：当周周四 10:00 之后（直到周六），最早可取货日顺延一周
- 指定日期不在允许的工作日 → 顺延到该日期之后的第一个允许日
- 指定日期早于最早可用日 → 取最早可用日
- 指定日期晚于最早可用日 max_advance_days 天以上 → INVALID_DATE
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from khorders.core.config import AppSettings
from khorders.models.enums import FulfillmentMethod
from khorders.services.order_errors import INVALID_DATE, OrderValidationError


@dataclass(frozen=True)
class Cutoff:
    weekday: int
    hour: int = 10
    minute: int = 0


@dataclass(frozen=True)
class FulfillmentRules:
    pickup_weekday: int = 5
    shipping_weekday: int = 4
    pickup_cutoff: Optional[Cutoff] = Cutoff(weekday=3, hour=10)
    shipping_cutoff: Optional[Cutoff] = None
    tz: str = "America/Denver"
    max_advance_days: int = 365

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "FulfillmentRules":
        return cls(
            pickup_weekday=int(settings.PICKUP_WEEKDAY),
            shipping_weekday=int(settings.SHIPPING_WEEKDAY),
            pickup_cutoff=Cutoff(
                weekday=int(settings.PICKUP_CUTOFF_WEEKDAY),
                hour=int(settings.PICKUP_CUTOFF_HOUR),
                minute=int(settings.PICKUP_CUTOFF_MINUTE),
            ),
            tz=settings.BUSINESS_TZ,
        )

    def weekday_for(self, method: FulfillmentMethod) -> int:
        return self.shipping_weekday if method == FulfillmentMethod.SHIPPING else self.pickup_weekday

    def cutoff_for(self, method: FulfillmentMethod) -> Optional[Cutoff]:
        return self.shipping_cutoff if method == FulfillmentMethod.SHIPPING else self.pickup_cutoff


def next_weekday_after(d: date, weekday: int) -> date:
    """d 之后（不含 d）的第一个 weekday。"""
    return d + timedelta(days=(weekday - d.weekday() - 1) % 7 + 1)


def _on_or_after(d: date, weekday: int) -> date:
    return d + timedelta(days=(weekday - d.weekday()) % 7)


def _local_naive(now: datetime, tz: str) -> datetime:
    # 带时区 → 换算到营业地时区；naive 视为营业地本地时间
    if now.tzinfo is not None:
        now = now.astimezone(ZoneInfo(tz))
    return now.replace(tzinfo=None)


def earliest_date(method: FulfillmentMethod, now: datetime, rules: FulfillmentRules) -> date:
    local = _local_naive(now, rules.tz)
    today = local.date()
    weekday = rules.weekday_for(method)
    cutoff = rules.cutoff_for(method)

    if cutoff is None:
        return next_weekday_after(today, weekday)

    target = _on_or_after(today, weekday)
    back = (weekday - cutoff.weekday) % 7
    cutoff_at = datetime.combine(target - timedelta(days=back), time(cutoff.hour, cutoff.minute))
    if local >= cutoff_at:
        target += timedelta(days=7)
    while target <= today:
        target += timedelta(days=7)
    return target


def resolve_date(
    method: FulfillmentMethod,
    requested: Optional[date],
    now: datetime,
    rules: FulfillmentRules,
) -> date:
    """(method, requested, now) → 履约日；纯函数，now 由调用方注入。"""
    earliest = earliest_date(method, now, rules)
    if requested is None:
        return earliest

    if requested > earliest + timedelta(days=rules.max_advance_days):
        raise OrderValidationError(
            "Requested date is too far in the future",
            code=INVALID_DATE,
            context={"requested_date": requested.isoformat(), "max_advance_days": rules.max_advance_days},
        )

    weekday = rules.weekday_for(method)
    candidate = requested if requested.weekday() == weekday else next_weekday_after(requested, weekday)
    return max(candidate, earliest)
