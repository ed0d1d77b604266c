from prometheus_fastapi_instrumentator import Instrumentator

from stockledger.core.config import settings
from stockledger.core.logging import configure_logging
from . import app as ledger_app

configure_logging()
app = ledger_app
app.title = settings.APP_NAME
# Instrument before startup; Starlette refuses new middleware once serving.
instrumentator = Instrumentator(excluded_handlers=["/health", "/metrics"])
instrumentator.instrument(app).expose(app, include_in_schema=False)


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("stockledger.main:app", host=settings.HOST, port=settings.PORT, log_config=None)
