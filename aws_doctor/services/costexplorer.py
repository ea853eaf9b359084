"""Cost Explorer queries behind the cost comparison and trend reports."""
from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from ..clients import AwsClients
from ..concurrency import CancelToken
from ..errors import AwsDoctorError
from ..models import CostPeriod, ServiceCost

logger = logging.getLogger(__name__)

UNBLENDED_COST = "UnblendedCost"
DEFAULT_UNIT = "USD"
TREND_MONTHS = 6


def first_day_of_month(day: date) -> date:
    return day.replace(day=1)


def shift_months(day: date, months: int) -> date:
    """Move ``day`` by ``months`` months, clamping to the end of the target month."""

    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _get_cost_and_usage(clients: AwsClients, cancel: CancelToken, **kwargs) -> List[dict]:
    """Return ``ResultsByTime`` across every ``NextPageToken`` page."""

    results: List[dict] = []
    token: Optional[str] = None
    while True:
        cancel.raise_if_cancelled()
        request = dict(kwargs)
        if token:
            request["NextPageToken"] = token
        response = clients.ce.get_cost_and_usage(**request)
        results.extend(response.get("ResultsByTime", []))
        token = response.get("NextPageToken")
        if not token:
            return results


def _amount(metrics: Dict[str, dict]) -> Tuple[float, str]:
    metric = metrics.get(UNBLENDED_COST)
    if not metric or metric.get("Amount") is None:
        raise AwsDoctorError(f"Cost data is missing the {UNBLENDED_COST} metric")
    try:
        amount = float(metric["Amount"])
    except ValueError as exc:
        raise AwsDoctorError(f"Could not parse cost amount {metric['Amount']!r}") from exc
    return amount, metric.get("Unit") or DEFAULT_UNIT


def fetch_month_to_date(clients: AwsClients, cancel: CancelToken, end: date) -> CostPeriod:
    """Return costs by service from the first of ``end``'s month up to ``end``.

    Services whose cost is zero are left out. An empty window (``end`` on the
    first of the month) is reported as zero without calling the API.
    """

    start = first_day_of_month(end)
    if end <= start:
        return CostPeriod(start=start.isoformat(), end=end.isoformat(), total=0.0, unit=DEFAULT_UNIT)

    time_period = {"Start": start.isoformat(), "End": end.isoformat()}
    grouped = _get_cost_and_usage(
        clients,
        cancel,
        Granularity="MONTHLY",
        TimePeriod=time_period,
        Metrics=[UNBLENDED_COST],
        GroupBy=[{"Type": "DIMENSION", "Key": "SERVICE"}],
    )
    services: Dict[str, ServiceCost] = {}
    for result in grouped:
        for group in result.get("Groups", []):
            try:
                amount, unit = _amount(group.get("Metrics", {}))
            except AwsDoctorError:
                logger.debug("Skipping cost group without a usable amount: %s", group.get("Keys"))
                continue
            if amount == 0:
                continue
            name = group["Keys"][0]
            previous = services.get(name)
            if previous is not None:
                amount += previous.amount
            services[name] = ServiceCost(name=name, amount=amount, unit=unit)

    totals = _get_cost_and_usage(
        clients, cancel, Granularity="MONTHLY", TimePeriod=time_period, Metrics=[UNBLENDED_COST]
    )
    if not totals:
        raise AwsDoctorError("No cost data returned for the specified time period")
    total = 0.0
    unit = DEFAULT_UNIT
    for result in totals:
        amount, unit = _amount(result.get("Total", {}))
        total += amount

    return CostPeriod(
        start=start.isoformat(),
        end=end.isoformat(),
        total=total,
        unit=unit,
        services=tuple(sorted(services.values(), key=lambda cost: cost.amount, reverse=True)),
    )


def fetch_monthly_totals(
    clients: AwsClients, cancel: CancelToken, today: date, months: int = TREND_MONTHS
) -> List[CostPeriod]:
    """Return one total per full month for the ``months`` months before ``today``'s month."""

    end = first_day_of_month(today)
    start = shift_months(end, -months)
    results = _get_cost_and_usage(
        clients,
        cancel,
        Granularity="MONTHLY",
        TimePeriod={"Start": start.isoformat(), "End": end.isoformat()},
        Metrics=[UNBLENDED_COST],
    )
    periods = []
    for result in results:
        amount, unit = _amount(result.get("Total", {}))
        time_period = result.get("TimePeriod", {})
        periods.append(
            CostPeriod(
                start=time_period.get("Start", ""),
                end=time_period.get("End", ""),
                total=amount,
                unit=unit,
            )
        )
    return periods


def previous_month_window_end(today: date) -> date:
    """Return the same day one month before ``today``."""

    return shift_months(today, -1)


__all__ = [
    "UNBLENDED_COST",
    "fetch_month_to_date",
    "fetch_monthly_totals",
    "first_day_of_month",
    "previous_month_window_end",
    "shift_months",
]
