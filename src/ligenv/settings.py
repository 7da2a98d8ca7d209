from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import Environment


class SimulationSettings(BaseModel):
    alpha_min: float = 0.001
    alpha_decay: float = 1 - 0.001 ** (1 / 300)
    velocity_decay: float = 0.4
    drag_alpha_target: float = 0.3
    max_ticks: int = 1000


class ResidueSceneSettings(BaseModel):
    """Forces for scenes made of residue nodes only (no ligand depiction)."""

    link_distance: float = 150.0
    ligand_link_distance: float = 55.0
    link_strength: float = 0.5
    charge_strength: float = -1000.0
    charge_distance_min: float = 55.0
    charge_distance_max: float = 250.0
    collision_radius: float = 45.0


class LigandSceneSettings(BaseModel):
    """Forces for scenes where the ligand depiction is fixed and only residues move."""

    link_distance: float = 5.0
    charge_strength: float = -80.0
    charge_distance_min: float = 10.0
    charge_distance_max: float = 20.0
    collision_radius: float = 50.0
    collision_iterations: int = 10
    collision_strength: float = 0.5
    initial_jitter: float = 55.0


class ViewportSettings(BaseModel):
    margin: float = 0.85
    label_padding: float = 50.0
    scale_extent: tuple[float, float] = (0.1, 10.0)


class WeightSettings(BaseModel):
    radius_range: tuple[float, float] = (20.0, 30.0)
    default_radius: float = 16.12
    default_color: str = "#FFFFFF"
    colormap: str = "YlOrRd"
    epsilon: float = 1e-6


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LIGENV_", env_nested_delimiter="__")

    environment: str = "production"
    debug: bool = False
    http_timeout: float = 30.0

    simulation: SimulationSettings = Field(default_factory=SimulationSettings)
    residue_scene: ResidueSceneSettings = Field(default_factory=ResidueSceneSettings)
    ligand_scene: LigandSceneSettings = Field(default_factory=LigandSceneSettings)
    viewport: ViewportSettings = Field(default_factory=ViewportSettings)
    weights: WeightSettings = Field(default_factory=WeightSettings)

    def get_environment(self) -> Environment:
        return Environment.parse(self.environment)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
