"""Terminal, JSON and Excel renderers for aws-doctor reports."""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, Iterable, List, Sequence

from .models import (
    Address,
    CostComparison,
    CostTrend,
    Finding,
    HostedZoneWaste,
    ImageWaste,
    LoadBalancer,
    ReservedInstanceExpiry,
    SnapshotWaste,
    StoppedInstance,
    Volume,
    WasteReport,
)
from .utils import format_rfc3339

FORMAT_TABLE = "table"
FORMAT_JSON = "json"
OUTPUT_FORMATS = (FORMAT_TABLE, FORMAT_JSON)

MAX_CELL_WIDTH = 40
TREND_BAR_WIDTH = 30


def _elastic_ip_json(finding: Finding) -> Dict[str, Any]:
    address: Address = finding.subject  # type: ignore[assignment]
    return {"public_ip": address.public_ip or "", "allocation_id": address.allocation_id}


def _volume_json(status: str) -> Callable[[Finding], Dict[str, Any]]:
    def convert(finding: Finding) -> Dict[str, Any]:
        volume: Volume = finding.subject  # type: ignore[assignment]
        return {"volume_id": volume.volume_id, "size_gib": volume.size_gib, "status": status}

    return convert


def _stopped_instance_json(finding: Finding) -> Dict[str, Any]:
    item: StoppedInstance = finding.subject  # type: ignore[assignment]
    return {
        "instance_id": item.instance.instance_id,
        "stopped_at": format_rfc3339(item.stopped_at),
        "days_ago": item.days_stopped,
    }


def _reserved_instance_json(finding: Finding) -> Dict[str, Any]:
    expiry: ReservedInstanceExpiry = finding.subject  # type: ignore[assignment]
    ri = expiry.reserved_instance
    return {
        "reserved_instance_id": ri.reserved_instance_id,
        "instance_type": ri.instance_type,
        "expiration_date": format_rfc3339(ri.end) if ri.end else "",
        "days_until_expiry": expiry.days_until_expiry,
        "state": ri.state,
        "status": expiry.status,
    }


def _load_balancer_json(finding: Finding) -> Dict[str, Any]:
    lb: LoadBalancer = finding.subject  # type: ignore[assignment]
    return {"name": lb.name, "arn": lb.arn, "type": lb.type}


def _ami_json(finding: Finding) -> Dict[str, Any]:
    waste: ImageWaste = finding.subject  # type: ignore[assignment]
    image = waste.image
    return {
        "image_id": image.image_id,
        "name": image.name,
        "description": image.description,
        "creation_date": format_rfc3339(waste.creation_date),
        "days_since_create": waste.days_since_create,
        "is_public": image.public,
        "snapshot_ids": list(waste.snapshot_ids),
        "snapshot_size_gb": waste.snapshot_size_gib,
        "used_by_instances": waste.used_by_instances,
        "confidence": finding.confidence,
        "max_potential_saving": round(finding.max_monthly_saving, 2),
        "safety_warning": finding.safety_note or "",
    }


def _snapshot_json(finding: Finding) -> Dict[str, Any]:
    waste: SnapshotWaste = finding.subject  # type: ignore[assignment]
    snapshot = waste.snapshot
    return {
        "snapshot_id": snapshot.snapshot_id,
        "volume_id": snapshot.volume_id,
        "volume_exists": waste.volume_exists,
        "size_gb": snapshot.size_gib,
        "start_time": format_rfc3339(snapshot.start_time) if snapshot.start_time else "",
        "days_since_create": waste.days_since_create,
        "description": snapshot.description,
        "category": waste.category,
        "reason": finding.reason,
        "confidence": finding.confidence,
        "max_potential_savings": round(finding.max_monthly_saving, 2),
        "note": finding.safety_note or "",
    }


def _hosted_zone_json(finding: Finding) -> Dict[str, Any]:
    waste: HostedZoneWaste = finding.subject  # type: ignore[assignment]
    zone = waste.zone
    return {
        "hosted_zone_id": zone.zone_id,
        "name": zone.name,
        "record_set_count": zone.record_set_count,
        "is_private": zone.private,
        "comment": zone.comment,
        "monthly_cost": waste.monthly_cost,
    }


BUCKET_SERIALIZERS: Dict[str, Callable[[Finding], Dict[str, Any]]] = {
    "unused_elastic_ips": _elastic_ip_json,
    "unused_ebs_volumes": _volume_json("available"),
    "stopped_instance_volumes": _volume_json("attached_to_stopped"),
    "stopped_instances": _stopped_instance_json,
    "reserved_instances": _reserved_instance_json,
    "unused_load_balancers": _load_balancer_json,
    "unused_amis": _ami_json,
    "orphaned_snapshots": _snapshot_json,
    "stale_snapshots": _snapshot_json,
    "empty_hosted_zones": _hosted_zone_json,
}


def waste_report_to_dict(report: WasteReport) -> Dict[str, Any]:
    """Return the JSON document for ``report``. Empty buckets are empty lists."""

    data: Dict[str, Any] = {
        "account_id": report.account_id,
        "generated_at": report.generated_at,
        "has_waste": report.has_waste,
    }
    for name, findings in report.buckets():
        data[name] = [BUCKET_SERIALIZERS[name](finding) for finding in findings]
    return data


def cost_comparison_to_dict(comparison: CostComparison) -> Dict[str, Any]:
    current, last = comparison.current_month, comparison.last_month
    last_by_service = {service.name: service for service in last.services}
    breakdown = []
    for service in current.services:
        previous = last_by_service.get(service.name)
        last_cost = previous.amount if previous else 0.0
        breakdown.append(
            {
                "service": service.name,
                "current_cost": service.amount,
                "last_cost": last_cost,
                "difference": service.amount - last_cost,
                "unit": service.unit,
            }
        )
    return {
        "account_id": comparison.account_id,
        "generated_at": comparison.generated_at,
        "current_month": {
            "start": current.start,
            "end": current.end,
            "total": current.total,
            "unit": current.unit,
        },
        "last_month": {"start": last.start, "end": last.end, "total": last.total, "unit": last.unit},
        "service_breakdown": breakdown,
    }


def trend_to_dict(trend: CostTrend) -> Dict[str, Any]:
    return {
        "account_id": trend.account_id,
        "generated_at": trend.generated_at,
        "months": [
            {"start": month.start, "end": month.end, "total": month.total, "unit": month.unit}
            for month in trend.months
        ],
    }


def print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2))


def _truncate(value: object) -> str:
    text = str(value)
    return (text[: MAX_CELL_WIDTH - 3] + "...") if len(text) > MAX_CELL_WIDTH else text


def print_table(title: str, headers: Sequence[str], rows: Iterable[Sequence[object]]) -> None:
    """Pretty-print ``rows`` under ``headers`` with columns sized to fit."""

    cells = [[_truncate(value) for value in row] for row in rows]
    widths = [len(header) for header in headers]
    for row in cells:
        for idx, value in enumerate(row):
            widths[idx] = max(widths[idx], len(value))

    header = "  ".join(f"{name:<{widths[idx]}}" for idx, name in enumerate(headers))
    print(f"\n{title}")
    print(header)
    print("-" * len(header))
    for row in cells:
        print("  ".join(f"{value:<{widths[idx]}}" for idx, value in enumerate(row)).rstrip())


def _money(amount: float) -> str:
    return f"${amount:.2f}"


def _waste_sections(report: WasteReport) -> List[tuple]:
    sections = []
    volumes = [
        ("Available (Unattached)", f.resource_id, f"{f.subject.size_gib} GiB")
        for f in report.unused_ebs_volumes
    ] + [
        ("Attached to Stopped Instance", f.resource_id, f"{f.subject.size_gib} GiB")
        for f in report.stopped_instance_volumes
    ]
    if volumes:
        sections.append(("EBS Volume Waste", ("Status", "Volume ID", "Size"), volumes))

    if report.unused_elastic_ips:
        rows = [
            (f.reason, f.subject.public_ip or "", f.subject.allocation_id)
            for f in report.unused_elastic_ips
        ]
        sections.append(("Elastic IP Waste", ("Status", "IP Address", "Allocation ID"), rows))

    ec2_rows = [
        (f.reason, f.resource_id, f"{f.subject.days_stopped} days ago") for f in report.stopped_instances
    ]
    for f in report.reserved_instances:
        days = f.subject.days_until_expiry
        time_info = f"In {days} days" if days >= 0 else f"{-days} days ago"
        ec2_rows.append((f"Reserved Instance ({f.reason})", f.resource_id, time_info))
    if ec2_rows:
        sections.append(("EC2 & Reserved Instance Waste", ("Status", "Instance ID", "Time Info"), ec2_rows))

    if report.unused_load_balancers:
        rows = [(f.reason, f.subject.name, f.subject.type) for f in report.unused_load_balancers]
        sections.append(("Load Balancer Waste", ("Status", "Name", "Type"), rows))

    if report.unused_amis:
        rows = [
            (
                "Unused*",
                f.resource_id,
                f.subject.image.name,
                f"{f.subject.days_since_create} days",
                _money(f.max_monthly_saving),
            )
            for f in report.unused_amis
        ]
        sections.append(
            (
                "Unused AMI Waste (low confidence)",
                ("Status", "AMI ID", "Name", "Age", "Max Savings/Mo"),
                rows,
            )
        )

    snapshots = [
        ("Orphaned (Volume Deleted)", f) for f in report.orphaned_snapshots
    ] + [("Stale (Old Backup)", f) for f in report.stale_snapshots]
    if snapshots:
        rows = [
            (label, f.resource_id, f.confidence, f"{f.subject.snapshot.size_gib} GB", _money(f.max_monthly_saving))
            for label, f in snapshots
        ]
        sections.append(
            ("EBS Snapshot Waste", ("Status", "Snapshot ID", "Confidence", "Size", "Max Savings/Mo"), rows)
        )

    if report.empty_hosted_zones:
        rows = [
            (f.reason, f.resource_id, f.subject.zone.name, _money(f.max_monthly_saving))
            for f in report.empty_hosted_zones
        ]
        sections.append(("Route 53 Hosted Zone Waste", ("Status", "Zone ID", "Name", "Cost/Mo"), rows))
    return sections


def print_waste_report(report: WasteReport) -> None:
    print("\nAWS DOCTOR CHECKUP")
    print(f"Account ID: {report.account_id}")
    if not report.has_waste:
        print("\nYour account is healthy! No waste found.")
        return

    for title, headers, rows in _waste_sections(report):
        print_table(title, headers, rows)

    if report.unused_amis:
        print("* AMIs may be referenced by Auto Scaling Groups or Launch Templates. Verify before deleting.")
    if report.orphaned_snapshots or report.stale_snapshots:
        print("Snapshot savings are upper bounds: snapshot storage is billed incrementally.")


def print_cost_comparison(comparison: CostComparison) -> None:
    current, last = comparison.current_month, comparison.last_month
    data = cost_comparison_to_dict(comparison)
    rows = [
        (
            entry["service"],
            _money(entry["last_cost"]),
            _money(entry["current_cost"]),
            f"{entry['difference']:+.2f}",
        )
        for entry in data["service_breakdown"]
    ]
    rows.append(("Total", _money(last.total), _money(current.total), f"{current.total - last.total:+.2f}"))
    print("\nAWS DOCTOR COST COMPARISON")
    print(f"Account ID: {comparison.account_id}")
    print_table(
        f"{last.start} .. {last.end} vs {current.start} .. {current.end} ({current.unit})",
        ("Service", "Last Month", "Current Month", "Difference"),
        rows,
    )


def print_trend(trend: CostTrend) -> None:
    print("\nAWS DOCTOR SPEND TREND")
    print(f"Account ID: {trend.account_id}")
    if not trend.months:
        print("\nNo cost data available.")
        return
    peak = max(month.total for month in trend.months) or 1.0
    rows = [
        (month.start[:7], _money(month.total), "#" * int(round(month.total / peak * TREND_BAR_WIDTH)))
        for month in trend.months
    ]
    print_table("Last 6 Months", ("Month", "Total", ""), rows)


def export_findings_to_excel(findings: Iterable[Finding], path: str) -> str:
    """Write *findings* to an Excel workbook located at *path*."""

    headers = ("Kind", "Resource ID", "Reason", "Confidence", "Max Monthly Saving (USD)", "Note")
    rows = (
        (
            finding.kind,
            finding.resource_id,
            finding.reason,
            finding.confidence,
            round(finding.max_monthly_saving, 2),
            finding.safety_note or "",
        )
        for finding in findings
    )
    return _export_rows_to_excel(rows, headers, path, sheet_title="Waste", purpose="waste findings")


def _export_rows_to_excel(
    rows: Iterable[Sequence[object]],
    headers: Sequence[str],
    path: str,
    *,
    sheet_title: str,
    purpose: str,
) -> str:
    """Write ``rows`` with ``headers`` to an Excel sheet using :mod:`openpyxl`."""

    try:
        from openpyxl import Workbook
        from openpyxl.utils import get_column_letter
    except ImportError as exc:  # pragma: no cover - dependency missing during tests
        raise RuntimeError(
            "The 'openpyxl' package is required to export "
            f"{purpose} to Excel. Install it with 'pip install openpyxl'."
        ) from exc

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title

    sheet.append(list(headers))
    column_widths = [len(header) for header in headers]

    for row in rows:
        values = list(row)
        sheet.append(values)
        for idx, value in enumerate(values):
            column_widths[idx] = max(column_widths[idx], len(str(value)))

    for idx, width in enumerate(column_widths, start=1):
        column_letter = get_column_letter(idx)
        sheet.column_dimensions[column_letter].width = min(width + 2, 60)

    workbook.save(path)
    return path


def render_waste(report: WasteReport, output_format: str = FORMAT_TABLE) -> None:
    if output_format == FORMAT_JSON:
        print_json(waste_report_to_dict(report))
    else:
        print_waste_report(report)


def render_cost_comparison(comparison: CostComparison, output_format: str = FORMAT_TABLE) -> None:
    if output_format == FORMAT_JSON:
        print_json(cost_comparison_to_dict(comparison))
    else:
        print_cost_comparison(comparison)


def render_trend(trend: CostTrend, output_format: str = FORMAT_TABLE) -> None:
    if output_format == FORMAT_JSON:
        print_json(trend_to_dict(trend))
    else:
        print_trend(trend)


__all__ = [
    "FORMAT_JSON",
    "FORMAT_TABLE",
    "OUTPUT_FORMATS",
    "cost_comparison_to_dict",
    "export_findings_to_excel",
    "print_table",
    "render_cost_comparison",
    "render_trend",
    "render_waste",
    "trend_to_dict",
    "waste_report_to_dict",
]
