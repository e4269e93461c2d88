from __future__ import annotations
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

Side = Literal["left", "right"]
LogicKind = Literal["angle", "position", "pipeline"]


class _ConfigModel(BaseModel):
    # Accept both snake_case and the camelCase keys of exported exercise files.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AngleConfig(_ConfigModel):
    id: str = ""
    side: Optional[Side] = None
    points: List[str] = Field(..., description="Three landmark names, vertex in the middle")
    min_threshold: float = 45.0
    max_threshold: float = 160.0
    relaxed_is_high: bool = True
    is_rep_counter: bool = False
    tolerance: Optional[float] = None

    @model_validator(mode="after")
    def _check_range(self):
        if self.min_threshold >= self.max_threshold:
            raise ValueError(f"angle '{self.id}': min_threshold must be below max_threshold")
        return self

    def applies_to(self, side: str) -> bool:
        return self.side is None or self.side == side


class RequiredAngle(_ConfigModel):
    id: str = ""
    side: Optional[Side] = None
    points: List[str]
    target_angle: float
    tolerance: float = 15.0

    def applies_to(self, side: str) -> bool:
        return self.side is None or self.side == side


class PositionConfig(_ConfigModel):
    """Distance / vertical-offset condition between two landmarks (normalized units)."""
    id: str = ""
    points: List[str]
    min_distance: Optional[float] = None
    max_distance: Optional[float] = None
    min_vertical: Optional[float] = None
    max_vertical: Optional[float] = None
    is_rep_counter: bool = False


class StartPosition(_ConfigModel):
    description: str = ""
    required_angles: List[RequiredAngle] = Field(default_factory=list)
    required_positions: List[PositionConfig] = Field(default_factory=list)
    ready_position_hold_time: float = Field(
        0.0,
        ge=0.0,
        validation_alias=AliasChoices("readyPositionHoldTime", "ready_position_hold_time", "holdTime", "hold_time"),
    )


class LandmarkSet(_ConfigModel):
    primary: List[str] = Field(default_factory=list)
    secondary: List[str] = Field(default_factory=list)


class ExerciseLandmarks(LandmarkSet):
    left: Optional[LandmarkSet] = None
    right: Optional[LandmarkSet] = None

    def _side_sets(self, sides: List[str]) -> Optional[List[LandmarkSet]]:
        per_side = [getattr(self, side) for side in sides if getattr(self, side) is not None]
        if not per_side:
            return None
        # a flat declaration wins for single-sided exercises
        if len(sides) == 1 and (self.primary or self.secondary):
            return None
        return per_side

    def primary_names(self, sides: List[str]) -> List[str]:
        sets = self._side_sets(sides)
        if sets is None:
            return list(self.primary)
        return [name for s in sets for name in s.primary]

    def secondary_names(self, sides: List[str]) -> List[str]:
        sets = self._side_sets(sides)
        if sets is None:
            return list(self.secondary)
        return [name for s in sets for name in s.secondary]


class LogicConfig(_ConfigModel):
    type: LogicKind = "angle"
    angles_to_track: List[AngleConfig] = Field(default_factory=list)
    positions_to_track: List[PositionConfig] = Field(default_factory=list)
    # Only used by type == "pipeline"; evaluated in order.
    steps: List[str] = Field(default_factory=list)
    rep_debounce_duration: Optional[float] = Field(None, ge=0.0, description="ms")


class ExerciseConfig(_ConfigModel):
    id: str
    name: str = ""
    is_two_sided: bool = False
    has_weight: bool = False
    require_all_landmarks_visible: bool = False
    landmarks: ExerciseLandmarks = Field(default_factory=ExerciseLandmarks)
    start_position: StartPosition = Field(default_factory=StartPosition)
    logic_config: LogicConfig = Field(default_factory=LogicConfig)
    rep_debounce_duration: Optional[float] = Field(None, ge=0.0, description="ms")
    instructions: str = ""
    tips: List[str] = Field(default_factory=list)
    muscle_groups: List[str] = Field(default_factory=list)

    @property
    def sides(self) -> List[str]:
        return ["left", "right"] if self.is_two_sided else ["left"]

    @property
    def hold_time(self) -> float:
        return self.start_position.ready_position_hold_time

    def debounce_ms(self, default: float) -> float:
        if self.rep_debounce_duration is not None:
            return self.rep_debounce_duration
        if self.logic_config.rep_debounce_duration is not None:
            return self.logic_config.rep_debounce_duration
        return default

    def angles_for(self, side: str) -> List[AngleConfig]:
        return [a for a in self.logic_config.angles_to_track if a.applies_to(side)]

    def rep_angle(self, side: str) -> Optional[AngleConfig]:
        """The angle that drives phases and rep counting for a side."""
        candidates = self.angles_for(side)
        for angle_cfg in candidates:
            if angle_cfg.is_rep_counter:
                return angle_cfg
        return candidates[0] if candidates else None
