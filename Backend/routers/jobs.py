import hmac

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config import JOB_RUN_KEY
from database import get_db
from services.dose_scheduler import run_notification_pass

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def _check_job_key(key: str, authorization: str) -> None:
    if not JOB_RUN_KEY:
        raise HTTPException(status_code=503, detail="JOB_RUN_KEY is not configured")
    supplied = key
    if not supplied and authorization.lower().startswith("bearer "):
        supplied = authorization[7:].strip()
    if not hmac.compare_digest(supplied.encode("utf-8"), JOB_RUN_KEY.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid job key")


@router.api_route("/run-dose-notifications", methods=["GET", "POST"])
def run_dose_notifications(
    key: str = Query(default=""),
    authorization: str = Header(default=""),
    db: Session = Depends(get_db),
):
    """External scheduler hook: one pass of expiration, low-stock and dose reminders."""
    _check_job_key(key, authorization)
    summary = run_notification_pass(db)
    if not summary["ok"]:
        return JSONResponse(status_code=500, content=summary)
    return summary
