from __future__ import annotations

from dataclasses import dataclass, field

from fogtrail.geometry import GeoPoint
from fogtrail.lod import LodPolicy


@dataclass
class Config:
    """Application configuration with sensible defaults."""

    # H3 resolution for fine exploration detail (~174m edge at 9)
    h3_resolution: int = 9

    # Delay after the last move-end before the fog starts fading (milliseconds)
    settle_delay_ms: int = 200

    # Duration of the hole fade-in animation (milliseconds)
    fade_duration_ms: int = 800

    # Frame callback interval, ~60 fps
    frame_interval_ms: int = 16

    # Below this zoom no individual cell is resolvable; draw uniform fog
    min_render_zoom: int = 12

    # Per-detail-level cell counts above which cells are bucketed
    lod_low_threshold: int = 50
    lod_medium_threshold: int = 200
    lod_high_threshold: int = 500

    # Fog fill while the viewport is moving and once it has settled (r, g, b, alpha)
    moving_fog_rgba: tuple[int, int, int, float] = (120, 120, 120, 0.9)
    settled_fog_rgba: tuple[int, int, int, float] = (100, 100, 100, 0.85)

    # Fraction of the viewport span added around it for cell queries
    view_padding: float = 0.1

    # Exploration backend
    api_base_url: str = "http://localhost:3001/api"
    user_id: str = ""
    sync_interval_ms: int = 30_000
    report_speed_mph: float = 2.5

    # Initial map view
    default_center: GeoPoint = field(default_factory=lambda: GeoPoint(40.7589, -73.9851))
    default_zoom: int = 16

    def lod_policy(self) -> LodPolicy:
        return LodPolicy(
            low_threshold=self.lod_low_threshold,
            medium_threshold=self.lod_medium_threshold,
            high_threshold=self.lod_high_threshold,
            min_render_zoom=self.min_render_zoom,
        )
