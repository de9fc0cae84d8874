"""
FastAPI REST API Module

Exposes the rate history and the deposit interest calculation over HTTP.
Incomplete calculation inputs withhold a result instead of failing, matching
the form-driven way the calculator is used.
"""

from datetime import datetime, timezone
from fastapi import FastAPI, HTTPException, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from .config import get_config
from .engine import InterestEngine
from .exceptions import EmptyHistory
from .feeds import RateBook, get_adapter
from .history import to_date
from .logging_config import setup_logging, log_action
from .schemas import (
    CalculateRequest, CalculateResponse, CalculationResultModel,
    RateChangeEventModel, RatesResponse, RefreshRatesRequest
)


config = get_config()

# Setup logging
logger = setup_logging(config.log_level, log_format=config.log_format)


def create_rate_book() -> RateBook:
    """Create the rate book, loading the configured feed file if any"""
    book = RateBook()
    if config.rate_feed_path:
        book.refresh_from_file(config.rate_feed_path)
    return book


# Global rate book instance
rate_book = create_rate_book()


# Create FastAPI app
app = FastAPI(
    title="Rental Deposit Interest API",
    description="Compounded rental deposit interest under historical deposit rates",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependency to get rate book
def get_rate_book() -> RateBook:
    return rate_book


def _rates_response(book: RateBook, store) -> RatesResponse:
    latest = store.latest()
    return RatesResponse(
        events=[RateChangeEventModel.from_event(e) for e in store],
        current=RateChangeEventModel.from_event(latest) if latest else None,
        using_fallback=book.using_fallback,
        advisory=book.advisory
    )


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/rates", response_model=RatesResponse)
async def list_rates(book: RateBook = Depends(get_rate_book)):
    """Get the rate history currently in effect"""
    return _rates_response(book, book.snapshot())


@app.get("/rates/as-of")
async def rate_as_of(
    on: str = Query(..., description="ISO date"),
    book: RateBook = Depends(get_rate_book)
):
    """Get the deposit rate in effect on a date"""
    try:
        on_date = to_date(on)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store = book.snapshot()
    event = store.event_as_of(on_date)
    return {
        "date": on_date.isoformat(),
        "annual_rate": str(store.rate_as_of(on_date)),
        "source": event.source if event else ""
    }


@app.post("/rates/refresh", response_model=RatesResponse)
async def refresh_rates(
    request: RefreshRatesRequest,
    book: RateBook = Depends(get_rate_book)
):
    """Rebuild the rate history from a raw feed"""
    try:
        adapter = get_adapter(request.format)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _rates_response(book, book.refresh(request.feed, adapter=adapter))


@app.post("/calculate", response_model=CalculateResponse)
async def calculate_interest(
    request: CalculateRequest,
    book: RateBook = Depends(get_rate_book)
):
    """Calculate net interest owed on a rental deposit"""
    history = book.snapshot()
    engine = InterestEngine()

    try:
        result = engine.calculate(
            request.principal or None,
            request.start_date or None,
            request.end_date or None,
            history
        )
    except EmptyHistory as e:
        log_action(logger, "error", str(e), action="calculate")
        raise HTTPException(status_code=500, detail="Interest rates are unavailable")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result is None:
        return CalculateResponse(ready=False, advisory=book.advisory)

    log_action(
        logger, "info", "Interest calculated", action="calculate",
        extra={"days": result.total_days, "periods": len(result.periods)}
    )
    return CalculateResponse(
        ready=True,
        result=CalculationResultModel.from_result(result),
        advisory=book.advisory
    )


def run_server(host: str = "0.0.0.0", port: int = 8000, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "deposit_interest.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
