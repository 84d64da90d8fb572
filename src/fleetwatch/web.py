from __future__ import annotations

from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from fleetwatch.db import init_db
from fleetwatch.routes import notifications, trucks
from fleetwatch.services.delivery import ConsoleNotificationPort, NotificationPort
from fleetwatch.services.notifications import NotificationService


def create_app(port: NotificationPort | None = None) -> FastAPI:
    init_db()
    service = NotificationService(port or ConsoleNotificationPort())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.initialize()
        yield

    app = FastAPI(title="fleetwatch", lifespan=lifespan)
    app.state.notifications = service

    app.include_router(trucks.router)
    app.include_router(notifications.router)

    @app.get("/")
    async def index():
        return RedirectResponse(url="/notifications/summary", status_code=302)

    return app
