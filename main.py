import json
import os
import sys

from waterops.api.app import create_app
from waterops.config.settings import get_settings
from waterops.reporting.pipeline import generate_report
from waterops.schemas.api_models import ReportRequest
from waterops.store import build_store, seed_store
from waterops.transform.kpis import compute_kpis
from waterops.utils.logger import setup_logger

logger = setup_logger()

# --- 1. API CONFIGURATION (Accessed by Uvicorn) ---
app = create_app()

USAGE = (
    "Usage: python main.py <job> [args]\n"
    "  serve\n"
    "  seed\n"
    "  report <reportType> <format> [startDate] [endDate]\n"
    "  kpis"
)


def run_serve(settings):
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)


def run_seed(settings):
    store = build_store(settings.model_copy(update={"seed_demo_data": False}))
    try:
        created = seed_store(store)
        logger.info(f"🌱 Seeded {created} records into the {store.backend_name} store")
    finally:
        store.close()


def run_report(settings, args):
    if len(args) < 2:
        logger.error("report needs <reportType> <format>")
        sys.exit(1)

    request = ReportRequest(
        report_type=args[0],
        format=args[1],
        start_date=args[2] if len(args) > 2 else None,
        end_date=args[3] if len(args) > 3 else None,
    )
    store = build_store(settings)
    try:
        export = generate_report(
            store,
            request,
            requested_by=settings.operator_username,
            title=settings.report_title,
        )
    finally:
        store.close()

    os.makedirs(settings.report_output_dir, exist_ok=True)
    path = os.path.join(settings.report_output_dir, export.filename)
    with open(path, "wb") as f:
        f.write(export.content)
    logger.info(f"💾 Report written to {path} ({export.content_type})")


def run_kpis(settings):
    store = build_store(settings)
    try:
        kpis = compute_kpis(store)
    finally:
        store.close()
    print(json.dumps(kpis.model_dump(by_alias=True), indent=2))


# --- 2. CLI JOB RUNNER (Accessed by Python command) ---
def main():
    """
    Main Entry Point for the service and its batch jobs.
    Usage: python main.py <job_name> [args]
    """
    if len(sys.argv) < 2:
        logger.error(f"No job specified.\n{USAGE}")
        sys.exit(1)

    job_name = sys.argv[1]
    args = sys.argv[2:]
    settings = get_settings()

    logger.info(f"Starting Water Operations. Job: {job_name}")

    jobs = {
        "serve": lambda: run_serve(settings),
        "seed": lambda: run_seed(settings),
        "report": lambda: run_report(settings, args),
        "kpis": lambda: run_kpis(settings),
    }
    if job_name not in jobs:
        logger.error(f"Job {job_name} not recognized.\n{USAGE}")
        sys.exit(1)

    try:
        jobs[job_name]()
    except Exception:
        logger.exception("Critical Job Failure")
        sys.exit(1)


if __name__ == "__main__":
    main()
