from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Literal

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from sprint_forecast.config import HorizonConfig, SimulationConfig
from sprint_forecast.forecasting.domain.models import ErrorKind, ForecastFailure, SprintWindow, Ticket
from sprint_forecast.forecasting.services.forecasting_service import ForecastingService


class TicketModel(BaseModel):
    key: str = Field("", description="Ticket identifier")
    sprints: list[int] = Field(default_factory=list, description="Sprints the ticket was assigned to, in order")
    is_finished: bool = False
    closed_at: date | None = None
    story_points: float = Field(0.0, ge=0.0)
    assignee: str | None = None

    def to_ticket(self) -> Ticket:
        return Ticket(
            sprints=tuple(self.sprints),
            is_finished=self.is_finished,
            closed_at=self.closed_at,
            story_points=self.story_points,
            assignee=self.assignee.strip() if self.assignee else None,
            key=self.key,
        )


class SimulateRequest(BaseModel):
    tickets: list[TicketModel]
    sprints: list[int] | None = Field(None, description="Explicit window; selected automatically when omitted")
    review_sprint: int | None = Field(None, ge=1)
    sprints_to_analyze: int | None = Field(None, ge=1)
    options: SimulationConfig = Field(default_factory=SimulationConfig)
    seed: int | None = None


class HowManyRequest(BaseModel):
    tickets: list[TicketModel]
    metric: Literal["tickets", "story_points"] = "tickets"
    sprints: list[int] | None = None
    options: HorizonConfig = Field(default_factory=HorizonConfig)


class ErrorResponse(BaseModel):
    kind: str
    message: str


def _failure_response(failure: ForecastFailure) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(kind=failure.kind.value, message=failure.message).model_dump(),
    )


def _window(sprints: list[int] | None) -> SprintWindow | None:
    return SprintWindow(tuple(sorted(sprints))) if sprints else None


def create_app(service: ForecastingService | None = None) -> FastAPI:
    forecasting = service or ForecastingService()
    app = FastAPI(title="Sprint Forecast")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/forecast/simulate", responses={422: {"model": ErrorResponse}})
    def simulate(req: SimulateRequest) -> Any:
        try:
            window = _window(req.sprints)
        except ValueError as exc:
            return _failure_response(ForecastFailure(kind=ErrorKind.INVALID_INPUT, message=str(exc)))
        outcome = forecasting.analyze(
            [t.to_ticket() for t in req.tickets],
            window=window,
            options=req.options,
            source=forecasting.random_source(req.seed),
            review_sprint=req.review_sprint,
            sprints_to_analyze=req.sprints_to_analyze,
        )
        if isinstance(outcome, ForecastFailure):
            return _failure_response(outcome)
        return {
            "sprints": list(outcome.window.sprints),
            "next_sprint": outcome.next_sprint,
            "scenarios": [asdict(s) for s in outcome.scenarios],
            "simulation": asdict(outcome.simulation),
            "contributors": [asdict(c) for c in outcome.contributors],
            "team_metrics": asdict(outcome.team_metrics),
            "has_enough_data": outcome.has_enough_data,
        }

    @app.post("/forecast/how-many", responses={422: {"model": ErrorResponse}})
    def how_many(req: HowManyRequest) -> Any:
        try:
            window = _window(req.sprints)
        except ValueError as exc:
            return _failure_response(ForecastFailure(kind=ErrorKind.INVALID_INPUT, message=str(exc)))
        outcome = forecasting.how_many(
            [t.to_ticket() for t in req.tickets],
            metric=req.metric,
            window=window,
            options=req.options,
        )
        if isinstance(outcome, ForecastFailure):
            return _failure_response(outcome)
        return {
            "results": {str(weeks): asdict(p) for weeks, p in outcome.by_weeks().items()},
            "metadata": asdict(outcome.metadata),
        }

    return app
