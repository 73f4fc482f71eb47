"""
FastAPI application for the GiveHub assistant.
Backs the chat assistant (`POST /assist`) and read-only campaign listings.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Literal, Optional

import structlog
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from src.agents import DonationAssistant, LedgerMutator, prompts
from src.config import Settings, settings as default_settings
from src.core.errors import CampaignNotFound, GivehubError, PersistenceError
from src.core.identity import IdentityProvider
from src.core.llm_service import LLMService
from src.data.models import ChatMessage, ConversationContext, ResultRef
from src.data.store import CampaignStore, JsonFileStore, SqlCampaignStore, seed_store
from src.data.synthetic import SyntheticDataGenerator

logger = structlog.get_logger()


# Request/Response Models
class ResultRefModel(BaseModel):
    """A campaign reference from a previous response."""
    id: str
    title: str = ""


class ChatMessageModel(BaseModel):
    """One chat turn held by the client."""
    role: str
    text: str = ""


class AssistContext(BaseModel):
    """Client-held conversation state."""
    model_config = ConfigDict(populate_by_name=True)

    last_results: List[ResultRefModel] = Field(default_factory=list, alias="lastResults")
    messages: List[ChatMessageModel] = Field(default_factory=list)

    def to_domain(self) -> ConversationContext:
        return ConversationContext(
            last_results=[ResultRef(id=r.id, title=r.title) for r in self.last_results],
            messages=[ChatMessage(role=m.role, text=m.text) for m in self.messages],
        )


class AssistRequest(BaseModel):
    """Request to the assistant."""
    prompt: Optional[str] = None
    mode: Literal["default", "pay", "rewrite"] = "default"
    context: Optional[AssistContext] = None


class PaymentRequest(BaseModel):
    """Direct donation from the campaign page."""
    model_config = ConfigDict(populate_by_name=True)

    campaign_id: Optional[str] = Field(default=None, alias="campaignId")
    amount: Optional[float] = None
    chain: Optional[str] = None
    donor_name: Optional[str] = Field(default=None, alias="donorName")


async def build_default_store(config: Settings) -> CampaignStore:
    """Open the configured store and seed it with demo data when empty."""
    if config.database_url:
        store: CampaignStore = SqlCampaignStore(config.database_url)
        await store.create_all()
    else:
        store = JsonFileStore.load(Path(config.data_file))

    creators, campaigns = SyntheticDataGenerator(seed=42).generate_dataset()
    await seed_store(store, campaigns, creators)
    return store


def _install_services(app: FastAPI, store: CampaignStore, llm: LLMService, config: Settings) -> None:
    app.state.store = store
    app.state.ledger = LedgerMutator(store)
    app.state.assistant = DonationAssistant(store, llm, config, ledger=app.state.ledger)
    app.state.identity = IdentityProvider(store, config)


router = APIRouter()


# Health check
@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    return {"status": "healthy", "ready": getattr(request.app.state, "assistant", None) is not None}


@router.post("/assist")
async def assist(body: AssistRequest, request: Request):
    """Plan and execute one assistant turn."""
    if not body.prompt or not body.prompt.strip():
        return JSONResponse(status_code=400, content={"error": "Missing prompt"})

    config: Settings = request.app.state.settings
    token = request.cookies.get(config.auth_cookie_name)
    identity = await request.app.state.identity.resolve(token)

    context = body.context.to_domain() if body.context else ConversationContext()
    response = await request.app.state.assistant.assist(
        body.prompt,
        mode=body.mode,
        context=context,
        identity=identity,
    )
    return response.to_dict()


# ============================================================================
# Campaign Endpoints
# ============================================================================

@router.get("/api/v1/campaigns")
async def list_campaigns(request: Request, q: Optional[str] = Query(None), category: Optional[str] = Query(None)):
    """List campaigns, optionally filtered by free text and category."""
    store: CampaignStore = request.app.state.store
    if q or category:
        campaigns = await store.search(q=q, category=category)
    else:
        campaigns = await store.all()
    return {"campaigns": [c.to_dict() for c in campaigns], "count": len(campaigns)}


@router.get("/api/v1/campaigns/{campaign_id}")
async def get_campaign(campaign_id: str, request: Request):
    """Get one campaign."""
    campaign = await request.app.state.store.by_id(campaign_id)
    if campaign is None:
        raise CampaignNotFound("Campaign not found", campaign_id=campaign_id)
    return {**campaign.to_dict(), "progress": campaign.progress}


@router.get("/api/v1/campaigns/{campaign_id}/donations")
async def list_donations(campaign_id: str, request: Request):
    """List donations recorded for a campaign."""
    store: CampaignStore = request.app.state.store
    if await store.by_id(campaign_id) is None:
        raise CampaignNotFound("Campaign not found", campaign_id=campaign_id)
    donations = await store.donations_for(campaign_id)
    return {"donations": [d.to_dict() for d in donations], "count": len(donations)}


# ============================================================================
# Payment Endpoints
# ============================================================================

@router.post("/api/payments")
async def create_payment(body: PaymentRequest, request: Request):
    """Apply a donation chosen on the campaign page."""
    if not (body.campaign_id and body.amount is not None and body.chain and body.donor_name):
        return JSONResponse(
            status_code=400,
            content={"error": "Missing required fields: campaignId, amount, chain, donorName"},
        )

    receipt = await request.app.state.ledger.apply_donation(body.campaign_id, body.donor_name, body.amount, body.chain)
    return {"success": True, **receipt.to_dict()}


# ============================================================================
# Error handlers
# ============================================================================

async def _persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("persistence_failure", path=request.url.path, error=exc.message, **exc.details)
    return JSONResponse(status_code=500, content={"error": prompts.PERSISTENCE_FAILURE_MESSAGE})


async def _service_error_handler(request: Request, exc: GivehubError) -> JSONResponse:
    logger.warning("request_failed", path=request.url.path, status=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("invalid_request", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal error"})


def create_app(
    store: Optional[CampaignStore] = None,
    llm: Optional[LLMService] = None,
    config: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    With an injected `store` the services are wired immediately; otherwise
    the lifespan opens (and later closes) the configured default store.
    """
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        owned: Optional[CampaignStore] = None
        if getattr(app.state, "assistant", None) is None:
            owned = await build_default_store(config)
            _install_services(app, owned, llm or LLMService(config=config), config)
            logger.info("assistant_ready", store=type(owned).__name__)

        yield

        if owned is not None:
            await owned.close()

    app = FastAPI(
        title=config.app_name,
        description="Conversational campaign search and donations for GiveHub",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = config

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PersistenceError, _persistence_error_handler)
    app.add_exception_handler(GivehubError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(router)

    if store is not None:
        _install_services(app, store, llm or LLMService(config=config), config)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
