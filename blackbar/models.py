"""Pydantic models shared by the image layer and the API endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class OverlaySpec(BaseModel):
    """Where to paint the black bar and how big it is.

    Attributes:
        x: Horizontal pixel coordinate of the bar's centre. A value of 0
            means no coordinates were supplied and no bar is drawn.
        y: Vertical pixel coordinate of the bar's centre.
        size: Scale step. The bar is ``(size + 1) * 50`` pixels wide and
            ``(size + 1) * 10`` pixels tall.

    Coordinates are not checked against the image; anything outside is
    clipped when the bar is painted.
    """

    x: int = 0
    y: int = 0
    size: int = Field(default=0, ge=0)

    @property
    def bar_size(self) -> tuple[int, int]:
        return (self.size + 1) * 50, (self.size + 1) * 10


class HealthResponse(BaseModel):
    status: str
    timestamp: str
