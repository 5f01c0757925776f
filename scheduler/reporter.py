# scheduler/reporter.py
import os
import json
from datetime import datetime, timezone
from utils.alerts import send_alert
import pandas as pd
import logging

logger = logging.getLogger("reporter")
logger.setLevel(logging.INFO)

REPORT_DIR = os.getenv("REPORT_DIR", "./reports")


def generate_export_report(changes, stats=None, report_dir=None, now=None):
    """
    Write the daily storefront export report and email it.

    Args:
        changes (list[dict]): Output of export_static_data()
        stats (GovernorStats, optional): Read-budget snapshot to include in
            the email body
        report_dir (str, optional): Defaults to REPORT_DIR
        now (datetime, optional): Report timestamp

    Returns:
        tuple[str, str]: Paths of the JSON and CSV reports

    Output Files:
        - {report_dir}/storefronts_{YYYY-MM-DD}.json
        - {report_dir}/storefronts_{YYYY-MM-DD}.csv
    """
    report_dir = report_dir or REPORT_DIR
    now = now or datetime.now(timezone.utc)
    os.makedirs(report_dir, exist_ok=True)

    filename_base = f"storefronts_{now.date().isoformat()}"
    json_path = os.path.join(report_dir, f"{filename_base}.json")
    csv_path = os.path.join(report_dir, f"{filename_base}.csv")

    rows = changes or [{"message": "No storefront changes since the last export."}]
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(rows, f, indent=2)
    pd.DataFrame(rows).to_csv(csv_path, index=False)
    logger.info(f"Generated storefront export report: {json_path}, {csv_path}")

    if changes:
        subject = f"[Storefront] {len(changes)} storefront change(s) exported"
    else:
        subject = "[Storefront] No storefront changes"

    body = f"Static export finished at {now.isoformat()}.\n\n"
    for entry in changes:
        body += (
            f"- Owner: {entry.get('owner_id')} | Slug: {entry.get('slug')} "
            f"| Type: {entry.get('change_type')}\n"
        )
    if stats is not None:
        body += (
            f"\nReads today: {stats.daily_reads} / {stats.max_daily_reads} "
            f"({stats.level})\n"
            f"Cache: {stats.cache_size} / {stats.max_cache_size}\n"
        )
    body += "\nAttached are the JSON and CSV reports.\n"

    send_alert(subject, body, attachments=[json_path, csv_path])
    logger.info("Export report email sent.")
    return json_path, csv_path
