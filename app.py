import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from portfolio_engine import config
from portfolio_engine.api.analysis_endpoint import basic_analysis, sec_analysis
from portfolio_engine.api.stock_endpoint import get_news_response, get_quote_response, validate_ticker
from portfolio_engine.api.translate_endpoint import translate_text, translation_error
from portfolio_engine.errors import PortfolioError, SourceUnavailable, ValidationError
from portfolio_engine.services import Services

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("pt.app")


class TickerRequest(BaseModel):
    ticker: Optional[str] = None


class TranslateRequest(BaseModel):
    text: Optional[str] = None
    targetLanguage: Optional[str] = None


def _bad_request(e: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": e.message, "code": e.code})


def create_app(services: Optional[Services] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = services or Services()
        app.state.services = svc
        await svc.connect()
        yield
        await svc.close()

    app = FastAPI(
        title="Portfolio Tracker API",
        description="Quotes, headlines, SEC filing analysis and translation for a stock watchlist.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        log.warning(f"Rejected {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid request", "code": "VALIDATION_ERROR"})

    # ── Stocks ─────────────────────────────────────────────────────────────

    @app.get(f"{config.API_PREFIX}/stock/{{ticker}}", tags=["Stocks"])
    async def get_stock(ticker: str, request: Request):
        try:
            symbol = validate_ticker(ticker)
        except ValidationError as e:
            return _bad_request(e)
        try:
            return await get_quote_response(request.app.state.services, symbol)
        except SourceUnavailable as e:
            log.warning(f"Quote failed for {symbol}: {e}")
            return JSONResponse(status_code=404, content={"error": "Stock not found", "ticker": symbol})

    @app.get(f"{config.API_PREFIX}/stock/{{ticker}}/news", tags=["Stocks"])
    async def get_stock_news(ticker: str, request: Request):
        try:
            symbol = validate_ticker(ticker)
        except ValidationError as e:
            return _bad_request(e)
        return await get_news_response(request.app.state.services, symbol)

    # ── Analysis ───────────────────────────────────────────────────────────

    @app.post(f"{config.API_PREFIX}/analyze/basic", tags=["Analysis"])
    async def analyze_basic(body: TickerRequest, request: Request):
        try:
            symbol = validate_ticker(body.ticker)
        except ValidationError as e:
            return _bad_request(e)
        try:
            return await basic_analysis(request.app.state.services, symbol)
        except PortfolioError as e:
            log.error(f"Basic analysis failed for {symbol}: {e}")
            return JSONResponse(status_code=500,
                                content={"error": "Failed to get basic analysis", "details": str(e)})

    @app.post(f"{config.API_PREFIX}/analyze/sec", tags=["Analysis"])
    async def analyze_sec(body: TickerRequest, request: Request):
        try:
            symbol = validate_ticker(body.ticker)
        except ValidationError as e:
            return _bad_request(e)
        try:
            return await sec_analysis(request.app.state.services, symbol)
        except PortfolioError as e:
            log.error(f"SEC analysis failed for {symbol}: {e}")
            return JSONResponse(status_code=500,
                                content={"error": "Failed to analyze SEC filings", "details": str(e)})

    # ── Translation ────────────────────────────────────────────────────────

    @app.post(f"{config.API_PREFIX}/translate", tags=["Translation"])
    async def translate(body: TranslateRequest, request: Request):
        try:
            return await translate_text(request.app.state.services, body.text, body.targetLanguage)
        except PortfolioError as e:
            status, content = translation_error(e)
            return JSONResponse(status_code=status, content=content)

    # ── Health ─────────────────────────────────────────────────────────────

    @app.get("/health")
    async def health(request: Request):
        svc = request.app.state.services
        return {
            "status": "ok",
            "cache": "redis" if svc.redis is not None else "memory",
            "llm": "enabled" if svc.llm.enabled else "disabled",
            "timestamp": int(time.time()),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=config.PORT, reload=False, log_level="info")
