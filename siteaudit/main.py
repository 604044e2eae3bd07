from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from siteaudit.api.routes import audits, keywords
from siteaudit.config import settings
from siteaudit.services.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    missing = settings.missing_provider_keys()
    if missing:
        logger.warning(f"Audits will be rejected until configured: {', '.join(missing)}")
    yield


app = FastAPI(
    title="SiteAudit",
    description="Website compliance audits powered by a crawl, a RAG knowledge base and parallel LLM auditors",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(audits.router)
app.include_router(keywords.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "siteaudit"}
