"""
SEO Metrics Hub — API Backend
FastAPI JSON API aggregating Moz, DataForSEO and Claude for SERP competitor
analysis, backlinks, domain metrics and keyword opportunity discovery.

Run locally:  uvicorn server:app --reload  (from /backend)
Env vars:     see utils/config.py
"""

import logging
from functools import lru_cache
from typing import Any, Callable, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from utils.config import Settings
from utils.dataforseo import DataForSeoClient
from utils.errors import ConfigurationError, ProviderRequestError, WorkflowError
from utils.keyword_generator import KeywordGenerator
from utils.log import setup_logging
from utils.moz import MozClient
from workflows.backlinks import run_backlinks
from workflows.domain_metrics import run_domain_metrics, run_domain_metrics_advanced
from workflows.opportunity_finder import (
    NO_VALID_KEYWORDS,
    run_opportunity_finder,
    run_opportunity_finder_sv,
)
from workflows.serp_competitors import run_serp_competitors

logger = logging.getLogger("server")


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


# ── App setup ─────────────────────────────────────────────
_settings = get_settings()
setup_logging(_settings.log_level, _settings.log_file)

app = FastAPI(title="SEO Metrics Hub API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def log_provider_config():
    s = get_settings()
    moz_ok = bool(s.moz_token or (s.moz_access_id and s.moz_secret_key))
    dfs_ok = bool(s.dataforseo_login and s.dataforseo_password)
    logger.info(
        f"SEO Metrics Hub API starting — moz={moz_ok} dataforseo={dfs_ok} "
        f"anthropic={bool(s.anthropic_api_key)} auth={'required' if s.require_auth else 'off'}"
    )


# ── Response envelope ─────────────────────────────────────

def send_success(data: Any = None, message: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content={"success": True, "message": message, "data": data},
    )


def send_error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or 500,
        content={"success": False, "message": message, "data": None},
    )


# ── Exception handlers ────────────────────────────────────

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    missing: list[str] = []
    invalid: list[str] = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        bucket = missing if err.get("type") == "missing" else invalid
        if field not in bucket:
            bucket.append(field)

    parts = []
    if missing:
        parts.append(f"Missing required fields: {', '.join(missing)}")
    if invalid:
        parts.append(f"Invalid fields: {', '.join(invalid)}")
    return send_error(400, "; ".join(parts) or "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return send_error(exc.status_code, str(exc.detail))


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return send_error(exc.status_code, exc.message)


@app.exception_handler(ProviderRequestError)
async def provider_error_handler(request: Request, exc: ProviderRequestError):
    logger.error(f"{request.method} {request.url.path} provider failure: {exc}")
    return send_error(500, str(exc))


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"{request.method} {request.url.path} misconfigured: {exc}")
    return send_error(500, str(exc))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} unexpected error")
    return send_error(500, "Internal server error")


# ── Dependencies ──────────────────────────────────────────

def require_user(request: Request, settings: Settings = Depends(get_settings)) -> Optional[str]:
    """User id set by the upstream authenticator; 401 when absent."""
    user_id = request.headers.get(settings.auth_user_header, "").strip()
    if not user_id and settings.require_auth:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id or None


# Client dependencies return builders; handlers call them after the body has validated.

def get_moz_client(settings: Settings = Depends(get_settings)) -> Callable[[], MozClient]:
    def build() -> MozClient:
        return MozClient(
            token=settings.moz_token or None,
            access_id=None if settings.moz_token else settings.moz_access_id,
            secret_key=None if settings.moz_token else settings.moz_secret_key,
            base_url=settings.moz_api_url,
            timeout=settings.moz_timeout,
        )
    return build


def get_dataforseo_client(settings: Settings = Depends(get_settings)) -> Callable[[], DataForSeoClient]:
    def build() -> DataForSeoClient:
        return DataForSeoClient(
            login=settings.dataforseo_login,
            password=settings.dataforseo_password,
            base_url=settings.dataforseo_url,
            timeout=settings.dataforseo_timeout,
        )
    return build


def get_keyword_generator(settings: Settings = Depends(get_settings)) -> Callable[[], KeywordGenerator]:
    def build() -> KeywordGenerator:
        return KeywordGenerator(
            api_key=settings.anthropic_api_key,
            model=settings.keyword_model,
            temperature=settings.keyword_temperature,
            timeout=settings.llm_timeout,
        )
    return build


# ── Request schemas ───────────────────────────────────────

class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class SerpCompetitorsRequest(CamelModel):
    keyword: str = Field(min_length=1)
    location_code_google: int
    language_code: str = Field(min_length=1)
    country_iso_code: Optional[str] = None
    fallback_locale: Optional[str] = None


class BacklinksRequest(CamelModel):
    domain: str = Field(min_length=1)
    limit: int = Field(default=25, ge=1)
    offset: Optional[str] = None
    sort: str = "source_page_authority"


class DomainRequest(CamelModel):
    domain: str = Field(min_length=1)


class OpportunityFinderRequest(CamelModel):
    niche: str = Field(min_length=1)
    google_language_code: str = Field(min_length=1)
    google_location_code: int
    google_language_name: str = Field(min_length=1)
    sub_niche: Optional[str] = None
    business_model: Optional[str] = None


# ── Routes ────────────────────────────────────────────────

@app.get("/")
def root():
    return {
        "success": True,
        "message": "Welcome to SEO Metrics Hub API",
        "version": app.version,
        "endpoints": {
            "health": "/health",
            "seo": [
                "/seo/serp-competitors",
                "/seo/backlinks",
                "/seo/domain-metrics",
                "/seo/domain-metrics-advanced",
                "/seo/opportunity-finder",
                "/seo/opportunity-finder-sv",
            ],
        },
    }


@app.get("/health")
def health():
    return send_success(None, "Server is running")


@app.post("/seo/serp-competitors")
async def serp_competitors(
    body: SerpCompetitorsRequest,
    user_id: Optional[str] = Depends(require_user),
    moz: Callable[[], MozClient] = Depends(get_moz_client),
    dataforseo: Callable[[], DataForSeoClient] = Depends(get_dataforseo_client),
):
    data = await run_serp_competitors(
        moz(),
        dataforseo(),
        keyword=body.keyword,
        location_code=body.location_code_google,
        language_code=body.language_code,
        country_iso_code=body.country_iso_code,
        fallback_locale=body.fallback_locale,
    )
    return send_success(data, "SERP competitors analysis completed")


@app.post("/seo/backlinks")
async def backlinks(
    body: BacklinksRequest,
    user_id: Optional[str] = Depends(require_user),
    moz: Callable[[], MozClient] = Depends(get_moz_client),
):
    data = await run_backlinks(
        moz(),
        domain=body.domain,
        limit=body.limit,
        offset=body.offset,
        sort=body.sort,
    )
    return send_success(data, "Backlinks retrieved successfully")


@app.post("/seo/domain-metrics")
async def domain_metrics(
    body: DomainRequest,
    user_id: Optional[str] = Depends(require_user),
    moz: Callable[[], MozClient] = Depends(get_moz_client),
    dataforseo: Callable[[], DataForSeoClient] = Depends(get_dataforseo_client),
):
    data = await run_domain_metrics(moz(), dataforseo(), domain=body.domain)
    return send_success(data, "Domain metrics retrieved successfully")


@app.post("/seo/domain-metrics-advanced")
async def domain_metrics_advanced(
    body: DomainRequest,
    user_id: Optional[str] = Depends(require_user),
    dataforseo: Callable[[], DataForSeoClient] = Depends(get_dataforseo_client),
):
    data = await run_domain_metrics_advanced(dataforseo(), domain=body.domain)
    return send_success(data, "Domain metrics advanced data retrieved successfully")


def _opportunity_message(data: dict) -> str:
    return "Opportunities found successfully" if data["keywords"] else NO_VALID_KEYWORDS


@app.post("/seo/opportunity-finder")
async def opportunity_finder(
    body: OpportunityFinderRequest,
    user_id: Optional[str] = Depends(require_user),
    generator: Callable[[], KeywordGenerator] = Depends(get_keyword_generator),
    dataforseo: Callable[[], DataForSeoClient] = Depends(get_dataforseo_client),
):
    data = await run_opportunity_finder(
        generator(),
        dataforseo(),
        niche=body.niche,
        language_code=body.google_language_code,
        location_code=body.google_location_code,
        language_name=body.google_language_name,
        sub_niche=body.sub_niche,
        business_model=body.business_model,
    )
    return send_success(data, _opportunity_message(data))


@app.post("/seo/opportunity-finder-sv")
async def opportunity_finder_sv(
    body: OpportunityFinderRequest,
    user_id: Optional[str] = Depends(require_user),
    generator: Callable[[], KeywordGenerator] = Depends(get_keyword_generator),
    dataforseo: Callable[[], DataForSeoClient] = Depends(get_dataforseo_client),
):
    data = await run_opportunity_finder_sv(
        generator(),
        dataforseo(),
        niche=body.niche,
        language_code=body.google_language_code,
        location_code=body.google_location_code,
        language_name=body.google_language_name,
        sub_niche=body.sub_niche,
        business_model=body.business_model,
    )
    return send_success(data, _opportunity_message(data))
