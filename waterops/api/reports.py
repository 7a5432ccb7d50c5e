from fastapi import APIRouter, Depends, Response

from waterops.api.deps import get_identity, get_settings_dep, get_store
from waterops.config.settings import Settings
from waterops.reporting.pipeline import generate_report
from waterops.schemas.api_models import Identity, ReportRequest
from waterops.store.base import RecordStore

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.post("/generate")
def generate(
    payload: ReportRequest,
    store: RecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
    identity: Identity = Depends(get_identity),
):
    """
    Formats and packages a report as a download.
    ``pdf`` and ``csv`` carry the formatted report; ``json`` carries the raw records.
    """
    export = generate_report(
        store,
        payload,
        now=store.now(),
        requested_by=identity.username,
        title=settings.report_title,
    )
    return Response(
        content=export.content,
        media_type=export.content_type,
        headers={"Content-Disposition": export.content_disposition},
    )
