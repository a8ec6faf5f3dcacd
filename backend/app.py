import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from config import settings
from errors import ValidationError
from fetcher import PageFetcher
from monitor import PageMonitor
from store import build_store
from summarizer import Summarizer, build_openrouter_client
from validator import validate_url

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared clients once; every request reuses them."""
    fetcher = PageFetcher()
    app.state.monitor = PageMonitor(
        store=build_store(settings),
        fetcher=fetcher,
        summarizer=Summarizer(build_openrouter_client()),
    )
    yield
    fetcher.close()


limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])
app = FastAPI(title="Web Monitor API", version="1.0.0", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_monitor(request: Request) -> PageMonitor:
    return request.app.state.monitor


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _check_to_api(row: dict) -> dict:
    return {
        "id": row.get("id"),
        "checkedAt": row.get("checked_at"),
        "status": row.get("status"),
        "hasChanges": bool(row.get("has_changes")),
        "summary": row.get("summary"),
        "diff": row.get("diff"),
        "snippet": row.get("snippet"),
        "error": row.get("error"),
        "contentHash": row.get("content_hash"),
    }


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {
        "status": "ok",
        "supabase_configured": bool(settings.SUPABASE_URL),
        "openrouter_configured": bool(settings.OPENROUTER_API_KEY),
    }


@app.get("/api/status")
def status(monitor: PageMonitor = Depends(get_monitor)):
    """Backend, database and LLM health with latencies."""
    return {"success": True, "data": monitor.status()}


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

class AddLinkRequest(BaseModel):
    url: Optional[str] = None
    label: Optional[str] = None
    tags: Optional[str] = None


@app.get("/api/links")
def list_links(monitor: PageMonitor = Depends(get_monitor)):
    """All monitored links, newest first, each with its latest check."""
    store = monitor.store
    data = []
    for link in store.list_links():
        latest = store.list_checks(link["id"], limit=1)
        data.append({
            "id": link["id"],
            "url": link["url"],
            "label": link.get("label"),
            "tags": link.get("tags"),
            "createdAt": link.get("created_at"),
            "lastChecked": link.get("last_checked"),
            "latestCheck": _check_to_api(latest[0]) if latest else None,
        })
    return {"success": True, "data": data}


@app.post("/api/links", status_code=201)
def add_link(req: AddLinkRequest, monitor: PageMonitor = Depends(get_monitor)):
    """Start monitoring a URL."""
    if not req.url or not req.url.strip():
        return _error(400, "URL is required")

    url = req.url.strip()
    try:
        validate_url(url)
    except ValidationError as e:
        return _error(400, str(e))

    store = monitor.store
    if store.find_link_by_url(url):
        return _error(409, "You're already monitoring this URL")

    if store.count_links() >= settings.MAX_LINKS:
        return _error(400, f"Maximum of {settings.MAX_LINKS} links reached. Delete one to add more.")

    link = store.create_link(
        url,
        label=(req.label or "").strip() or None,
        tags=(req.tags or "").strip() or None,
    )
    logger.info(f"Now monitoring {url}")
    return {"success": True, "data": link}


@app.delete("/api/links/{link_id}")
def delete_link(link_id: str, monitor: PageMonitor = Depends(get_monitor)):
    """Stop monitoring a link and drop its check history."""
    if not monitor.store.delete_link(link_id):
        return _error(404, "Link not found")
    return {"success": True, "data": {"id": link_id}}


@app.get("/api/history/{link_id}")
def link_history(link_id: str, monitor: PageMonitor = Depends(get_monitor)):
    """Most recent checks for a link, newest first."""
    if not monitor.store.get_link(link_id):
        return _error(404, "Link not found")
    checks = monitor.store.list_checks(link_id, limit=settings.MAX_CHECKS_PER_LINK)
    return {"success": True, "data": [_check_to_api(c) for c in checks]}


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

class CheckRequest(BaseModel):
    linkId: Optional[str] = None


@app.post("/api/check")
@limiter.limit("10/minute")
def run_check(
    request: Request,
    req: Optional[CheckRequest] = None,
    monitor: PageMonitor = Depends(get_monitor),
):
    """Check one link (`linkId`) or every monitored link."""
    if req and req.linkId:
        try:
            outcome = monitor.run_check(req.linkId)
        except LookupError as e:
            return _error(404, str(e))
        except Exception as e:
            logger.error(f"Check failed for {req.linkId}: {e}")
            return _error(500, f"Check failed: {e}")
        return {"success": True, "data": outcome.to_dict()}

    outcomes = monitor.run_all()
    return {"success": True, "data": [o.to_dict() for o in outcomes]}
