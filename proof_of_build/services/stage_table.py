"""Ordered pipeline stage definitions.

The stage table is the single normative source of stage ordering. It is
built once at process start and injected into the state store, the stage
executor and the poller; nothing else hardcodes stage transitions.

Stage Order:
    ingest(0) -> classify(1) -> generate-script(2) -> generate-audio(3)
    -> assemble(4) -> ready(5), plus the sentinel error stage (no order)
"""

from collections.abc import Iterable
from dataclasses import dataclass

from proof_of_build.exceptions import InvalidStageError
from proof_of_build.schemas import PipelineStage

# Order assigned to the error sentinel, which is reachable from any stage
ERROR_STAGE_ORDER = -1


@dataclass(frozen=True)
class StageDefinition:
    stage: PipelineStage
    name: str
    description: str
    required: bool
    order: int


DEFAULT_STAGE_DEFINITIONS: tuple[StageDefinition, ...] = (
    StageDefinition(PipelineStage.INGEST, "Ingest Artifacts", "Read artifacts from storage", True, 0),
    StageDefinition(
        PipelineStage.CLASSIFY,
        "Classify Artifacts",
        "Classify artifacts by type (screenshot, terminal, log)",
        True,
        1,
    ),
    StageDefinition(
        PipelineStage.GENERATE_SCRIPT,
        "Generate Script",
        "Generate narration script with the language model",
        True,
        2,
    ),
    StageDefinition(
        PipelineStage.GENERATE_AUDIO,
        "Generate Audio",
        "Generate audio narration with ElevenLabs",
        True,
        3,
    ),
    StageDefinition(PipelineStage.ASSEMBLE, "Assemble", "Assemble final project", True, 4),
    StageDefinition(PipelineStage.READY, "Ready", "Project is ready for playback", False, 5),
    StageDefinition(PipelineStage.ERROR, "Error", "Error state", False, ERROR_STAGE_ORDER),
)


class StageTable:
    """Immutable ordered lookup over stage definitions.

    Example:
        >>> table = build_default_stage_table()
        >>> table.next_stage(PipelineStage.INGEST)
        <PipelineStage.CLASSIFY: 'classify'>
        >>> table.next_stage(PipelineStage.READY) is None
        True
    """

    def __init__(self, definitions: Iterable[StageDefinition]):
        self._definitions = tuple(definitions)
        self._by_stage = {definition.stage: definition for definition in self._definitions}
        if len(self._by_stage) != len(self._definitions):
            raise ValueError("Stage table contains duplicate stages")
        if PipelineStage.ERROR not in self._by_stage:
            raise ValueError("Stage table must define the error stage")
        ordered = [d for d in self._definitions if d.stage != PipelineStage.ERROR]
        if not ordered:
            raise ValueError("Stage table must define at least one ordered stage")
        self._ordered = tuple(sorted(ordered, key=lambda d: d.order))
        self._by_order = {d.order: d for d in self._ordered}

    @property
    def definitions(self) -> tuple[StageDefinition, ...]:
        return self._definitions

    @property
    def ordered_stages(self) -> tuple[PipelineStage, ...]:
        """Stages in pipeline order, excluding error."""
        return tuple(d.stage for d in self._ordered)

    @property
    def initial_stage(self) -> PipelineStage:
        return self._ordered[0].stage

    @property
    def final_stage(self) -> PipelineStage:
        return self._ordered[-1].stage

    @property
    def error_stage(self) -> PipelineStage:
        return PipelineStage.ERROR

    def is_valid_stage(self, stage: object) -> bool:
        """Pure membership test; accepts enum members or raw strings."""
        try:
            return PipelineStage(stage) in self._by_stage
        except ValueError:
            return False

    def get_definition(self, stage: PipelineStage | str) -> StageDefinition | None:
        if not self.is_valid_stage(stage):
            return None
        return self._by_stage[PipelineStage(stage)]

    def require_definition(self, stage: PipelineStage | str) -> StageDefinition:
        definition = self.get_definition(stage)
        if definition is None:
            raise InvalidStageError(str(stage))
        return definition

    def next_stage(self, current: PipelineStage | str) -> PipelineStage | None:
        """Return the stage whose order is exactly current.order + 1.

        Returns None for unknown stages, the error sentinel and the final stage.
        """
        definition = self.get_definition(current)
        if definition is None or definition.stage == PipelineStage.ERROR:
            return None
        following = self._by_order.get(definition.order + 1)
        return following.stage if following else None

    def required_stages(self) -> list[PipelineStage]:
        """Required stages in order, excluding ready and error."""
        return [
            d.stage
            for d in self._ordered
            if d.required and d.stage not in (PipelineStage.READY, PipelineStage.ERROR)
        ]

    def is_terminal(self, stage: PipelineStage | str) -> bool:
        """True for the final stage and the error sentinel."""
        return self.is_valid_stage(stage) and PipelineStage(stage) in (
            self.final_stage,
            PipelineStage.ERROR,
        )

    def precedes(self, earlier: PipelineStage, later: PipelineStage) -> bool:
        """True if ``earlier`` comes strictly before ``later`` in pipeline order."""
        first = self.require_definition(earlier)
        second = self.require_definition(later)
        if PipelineStage.ERROR in (first.stage, second.stage):
            return False
        return first.order < second.order


def build_default_stage_table() -> StageTable:
    return StageTable(DEFAULT_STAGE_DEFINITIONS)
