import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pledgebook.core.config import settings
from pledgebook.api.routes.auth import router as auth_router
from pledgebook.api.routes.records import router as records_router
from pledgebook.api.routes.dashboard import router as dashboard_router
from pledgebook.api.routes.users import router as users_router
from pledgebook.api.routes.audit import router as audit_router

logging.basicConfig(
    level=getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="PledgeBook")

origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
@app.get("/api/health")
def health():
    return {"status": "ok"}

app.include_router(auth_router)
app.include_router(records_router)
app.include_router(dashboard_router)
app.include_router(users_router)
app.include_router(audit_router)
