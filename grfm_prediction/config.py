"""Configuration management for the GRFM prediction engine."""
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .prediction import GRFMParameters
from .reactions import select_method


class Settings(BaseSettings):
    """Engine settings loaded from GRFM_* environment variables (or .env)."""

    # Bodies
    PELVIS_BODY_NAME: str = Field(default="pelvis", description="Body carrying the floating base")
    R_STATION_BODY_NAME: str = Field(default="calcn_r", description="Right stance body")
    L_STATION_BODY_NAME: str = Field(default="calcn_l", description="Left stance body")

    # Foot stations, body frame [m]; JSON lists in the environment
    R_HEEL_LOCATION: List[float] = Field(default=[-0.125, -0.035, 0.0], description="Right heel point")
    L_HEEL_LOCATION: List[float] = Field(default=[-0.125, -0.035, 0.0], description="Left heel point")
    R_TOE_LOCATION: List[float] = Field(default=[0.075, -0.035, 0.0], description="Right metatarsal point")
    L_TOE_LOCATION: List[float] = Field(default=[0.075, -0.035, 0.0], description="Left metatarsal point")

    # Algorithm
    DIRECTION_WINDOW_SIZE: int = Field(default=10, description="Heading moving-average length [samples]")
    METHOD: str = Field(default="newton_euler", description="newton_euler|inverse_dynamics (or ne|id)")
    HEEL_STRIKE_TOLERANCE: float = Field(default=0.0, description="Heel-strike sample tolerance [s]")

    model_config = SettingsConfigDict(
        env_prefix="GRFM_",
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def to_parameters(self):
        """GRFMParameters for these settings; raises ConfigurationError on a bad method."""
        select_method(self.METHOD)
        return GRFMParameters(
            pelvis_body_name=self.PELVIS_BODY_NAME,
            r_station_body_name=self.R_STATION_BODY_NAME,
            l_station_body_name=self.L_STATION_BODY_NAME,
            r_heel_station_location=self.R_HEEL_LOCATION,
            l_heel_station_location=self.L_HEEL_LOCATION,
            r_toe_station_location=self.R_TOE_LOCATION,
            l_toe_station_location=self.L_TOE_LOCATION,
            direction_window_size=self.DIRECTION_WINDOW_SIZE,
            method=self.METHOD,
            heel_strike_tolerance=self.HEEL_STRIKE_TOLERANCE,
        )
