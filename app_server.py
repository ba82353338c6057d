from __future__ import annotations

from dataclasses import replace
from typing import Any

# load_dotenv() runs before settings are read so CARE_PLAN_* values from .env apply.
from dotenv import load_dotenv
load_dotenv()

from auth import check_request
from care_plan_merge import MergeResult, run_merge
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from plan_config import STRATEGY_CHOICES, Settings, load_profile, load_settings, profile_from_json
from plan_errors import CarePlanError, MergeFailedError, TemplateFetchError, ValidationError
from pydantic import BaseModel
from section_text import length_report, missing_sections
from template_probe import inspect_template

app = FastAPI(title="Care Plan Merge API")

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(load_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Care-Plan-Strategy", "X-Care-Plan-Truncated", "X-Care-Plan-Warnings"],
)


def get_settings() -> Settings:
    return load_settings()


# ── AUTH MIDDLEWARE ────────────────────────────────────────────────────────────
@app.middleware("http")
async def _auth_middleware(request: Request, call_next):
    """Reject unauthenticated calls to /api/* when a signing secret is configured."""
    denied = check_request(request, get_settings().jwt_secret)
    if denied is not None:
        return denied
    return await call_next(request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "message": "Request validation failed.",
            "detail": exc.errors(),
        },
    )


class SectionsRequest(BaseModel):
    beliefs: str | None = None
    values: str | None = None
    wishes: str | None = None


class UpdatePdfRequest(SectionsRequest):
    strategy: str | None = None


def _sections(payload: SectionsRequest | dict[str, Any]) -> dict[str, str | None]:
    if isinstance(payload, SectionsRequest):
        payload = payload.model_dump()
    return {name: payload.get(name) for name in ("beliefs", "values", "wishes")}


def _with_strategy(settings: Settings, strategy: str | None) -> Settings | JSONResponse:
    if not strategy:
        return settings
    if strategy not in STRATEGY_CHOICES:
        return JSONResponse(
            status_code=400,
            content={"error": f"Unknown strategy '{strategy}'", "choices": list(STRATEGY_CHOICES)},
        )
    return replace(settings, strategy=strategy)


def pdf_response(result: MergeResult) -> Response:
    headers = {
        "Content-Disposition": f"attachment; filename={result.filename}",
        "X-Care-Plan-Strategy": result.strategy,
    }
    if result.truncations:
        headers["X-Care-Plan-Truncated"] = ",".join(event.section for event in result.truncations)
    if result.warnings:
        headers["X-Care-Plan-Warnings"] = str(len(result.warnings))
    return Response(content=result.data, media_type="application/pdf", headers=headers)


def merge_response(sections: dict[str, str | None], settings: Settings, **kwargs: Any) -> Response:
    missing = missing_sections(sections)
    if missing:
        return JSONResponse(status_code=400, content={"error": "All sections are required", "missing": missing})

    print("Updating PDF with user content...")
    try:
        result = run_merge(sections, settings, **kwargs)
    except ValidationError as exc:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Please shorten your input",
                "details": exc.detail,
                "overages": exc.overages,
                "max_chars": exc.max_chars,
            },
        )
    except MergeFailedError as exc:
        print(f"[FAIL] Error updating PDF: {exc.detail}")
        status = 502 if isinstance(exc.__cause__, TemplateFetchError) else 500
        return JSONResponse(status_code=status, content={"error": "Failed to update PDF", "details": exc.detail})

    print("PDF updated successfully")
    return pdf_response(result)


# ── ROUTES ─────────────────────────────────────────────────────────────────────
@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "OK", "message": "Server is running"}


@app.post("/api/validate")
def validate_sections(payload: SectionsRequest) -> dict[str, Any]:
    settings = get_settings()
    report = length_report(_sections(payload), settings.max_chars)
    return {"ok": not any(row["over"] for row in report.values()), "sections": report}


@app.post("/api/update-pdf")
def update_pdf(payload: UpdatePdfRequest) -> Response:
    settings = _with_strategy(get_settings(), payload.strategy)
    if isinstance(settings, JSONResponse):
        return settings
    return merge_response(_sections(payload), settings)


@app.post("/api/update-pdf-upload")
def update_pdf_upload(
    template: UploadFile = File(...),
    beliefs: str | None = Form(None),
    values: str | None = Form(None),
    wishes: str | None = Form(None),
    profile_json: str | None = Form(None),
    strategy: str | None = Form(None),
) -> Response:
    settings = _with_strategy(get_settings(), strategy)
    if isinstance(settings, JSONResponse):
        return settings
    try:
        profile = profile_from_json(profile_json) if profile_json else load_profile(settings.profile)
    except CarePlanError as exc:
        return JSONResponse(status_code=400, content={"error": "Invalid profile", "details": exc.detail})

    contents = template.file.read()
    sections = {"beliefs": beliefs, "values": values, "wishes": wishes}
    return merge_response(sections, settings, profile=profile, template=contents)


@app.post("/api/inspect-template")
def inspect_uploaded_template(
    template: UploadFile = File(...),
    profile_json: str | None = Form(None),
) -> Any:
    settings = get_settings()
    try:
        profile = profile_from_json(profile_json) if profile_json else load_profile(settings.profile)
        return inspect_template(template.file.read(), profile)
    except CarePlanError as exc:
        return JSONResponse(status_code=400, content={"error": "Failed to inspect template", "details": exc.detail})
