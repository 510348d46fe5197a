from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from .charts import ChartColors, ChartThresholds, SvgSurface, TimeseriesChart
from .config import Settings, settings, setup_logging
from .models import Snapshot, metric_value
from .services.poller import FetchJSON, StatusPoller
from .transport import AiohttpTransport
from .visibility import VisibilitySignal

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


class VisibilityUpdate(BaseModel):
    hidden: bool


class Dashboard:
    """Runtime state shared by the routes: latest snapshot, chart and poller."""

    def __init__(self, app_settings: Settings) -> None:
        self.settings = app_settings
        self.visibility = VisibilitySignal()
        self.surface = SvgSurface(width=app_settings.chart_width, height=app_settings.chart_height)
        self.chart = TimeseriesChart(
            self.surface,
            max_points=app_settings.chart_max_points,
            colors=ChartColors(
                high=app_settings.color_high,
                medium=app_settings.color_medium,
                low=app_settings.color_low,
            ),
            thresholds=ChartThresholds(
                low=app_settings.threshold_low,
                medium=app_settings.threshold_medium,
            ),
        )
        self.snapshot: Snapshot = {}
        self.last_error: Optional[str] = None
        self.poller: Optional[StatusPoller] = None

    def build_poller(self, fetch_json: FetchJSON) -> StatusPoller:
        self.poller = StatusPoller(
            fetch_json,
            self.visibility,
            base_url=self.settings.status_url,
            server_ids=self.settings.server_ids,
            interval_seconds=self.settings.interval_seconds,
            on_update=self.handle_update,
            on_error=self.handle_error,
            scrape_interval_metric=self.settings.scrape_interval_metric,
        )
        return self.poller

    def handle_update(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot
        self.last_error = None
        value = metric_value(snapshot, self.settings.chart_metric, self.settings.chart_instance)
        if value is not None:
            self.chart.push(value)

    def handle_error(self, exc: Exception) -> None:
        self.last_error = str(exc) or type(exc).__name__

    def status_payload(self) -> Dict[str, Any]:
        poller = self.poller
        return {
            "state": poller.state.value if poller else None,
            "interval_ms": poller.interval_ms if poller else None,
            "active": not self.visibility.hidden,
            "last_error": self.last_error,
            "instances": {
                instance_id: status.model_dump() for instance_id, status in self.snapshot.items()
            },
        }


def get_dashboard(request: Request) -> Dashboard:
    return request.app.state.dashboard


def create_app(
    app_settings: Settings = settings, fetch_json: Optional[FetchJSON] = None
) -> FastAPI:
    dashboard = Dashboard(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with AsyncExitStack() as stack:
            fetch = fetch_json
            if fetch is None:
                transport = await stack.enter_async_context(
                    AiohttpTransport(timeout_seconds=app_settings.request_timeout_seconds)
                )
                fetch = transport.fetch_json
            poller = dashboard.build_poller(fetch)
            poller.start()
            logger.info("Polling %s every %.1fs", app_settings.status_url, app_settings.interval_seconds)
            try:
                yield
            finally:
                await poller.close()

    app = FastAPI(title=app_settings.app_name, lifespan=lifespan)
    app.state.dashboard = dashboard

    @app.get("/", include_in_schema=False)
    async def root_redirect() -> RedirectResponse:
        return RedirectResponse("/dashboard")

    @app.get("/dashboard")
    async def dashboard_page(request: Request, dashboard: Dashboard = Depends(get_dashboard)):
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {
                "app_name": dashboard.settings.app_name,
                "chart_metric": dashboard.settings.chart_metric,
                "chart_width": dashboard.settings.chart_width,
                "chart_height": dashboard.settings.chart_height,
                "refresh_interval": dashboard.settings.interval_seconds,
            },
        )

    @app.get("/api/status")
    async def read_status(dashboard: Dashboard = Depends(get_dashboard)):
        return dashboard.status_payload()

    @app.get("/api/status/{instance_id}")
    async def read_instance(instance_id: str, dashboard: Dashboard = Depends(get_dashboard)):
        status = dashboard.snapshot.get(instance_id)
        if status is None:
            raise HTTPException(status_code=404, detail=f"Instance '{instance_id}' not found.")
        return status.model_dump()

    @app.get("/chart.svg", include_in_schema=False)
    async def chart_svg(dashboard: Dashboard = Depends(get_dashboard)) -> Response:
        return Response(content=dashboard.surface.render(), media_type="image/svg+xml")

    @app.post("/api/visibility")
    async def update_visibility(
        update: VisibilityUpdate, dashboard: Dashboard = Depends(get_dashboard)
    ):
        dashboard.visibility.set_hidden(update.hidden)
        return {
            "hidden": dashboard.visibility.hidden,
            "state": dashboard.poller.state.value if dashboard.poller else None,
        }

    return app


setup_logging(settings.log_level)
app = create_app()
