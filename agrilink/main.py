from dotenv import load_dotenv

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .messaging import routers as messaging_router
from .notifications import routers as notifications_router
from .announcements import routers as announcements_router
from .reports import routers as reports_router

from .core.middleware import logging_middleware
from .utils.env_helper import env_list
from .utils.logging_config import setup_logging

load_dotenv()
setup_logging()

app = FastAPI(title="AgriLink Messaging")
app.include_router(messaging_router.router, prefix="/messaging", tags=["Messaging"])
app.include_router(
    notifications_router.router, prefix="/notifications", tags=["Notifications"]
)
app.include_router(
    announcements_router.router, prefix="/announcements", tags=["Announcements"]
)
app.include_router(reports_router.router, prefix="/reports", tags=["Reports"])


origins = env_list(
    "CORS_ORIGINS",
    [
        "http://localhost:5173",
        "http://localhost:8080",
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(logging_middleware)


@app.get("/health")
def health():
    return {"status": "healthy"}
