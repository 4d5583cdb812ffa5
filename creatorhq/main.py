import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from creatorhq.api.bookings import router as bookings_router
from creatorhq.api.calendar import router as calendar_router
from creatorhq.api.webhooks import router as webhooks_router
from creatorhq.core.config import settings
from creatorhq.wiring import dependencies

# Keys passed through `extra=` across the service, in display order.
LOG_CONTEXT_KEYS = ("booking_id", "creator_id", "event", "task", "status", "conflicting", "day", "error")


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in LOG_CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value in (None, "", [], ()):
                continue
            if isinstance(value, (list, tuple)):
                value = ",".join(str(v) for v in value)
            extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    # drain side effects still in flight
    dependencies.shutdown()


app = FastAPI(title=f"{settings.BUSINESS_NAME} Bookings", version="1.0.0", lifespan=lifespan)

app.include_router(bookings_router, tags=["bookings"])
app.include_router(webhooks_router, tags=["webhooks"])
app.include_router(calendar_router, tags=["calendar"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
