"""
Pipeline stage contracts.

Every stage adapter implements StageAdapter.run() and returns a StageResult.
The manager and the CLI only see this uniform interface; collaborators are
injected into the concrete adapters so tests can swap them.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Any, Type


@dataclass
class StageResult:
    """Uniform output from every pipeline stage."""
    lead_ids: List[str] = field(default_factory=list)
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'lead_ids': self.lead_ids,
            'processed': self.processed,
            'failed': self.failed,
            'skipped': self.skipped,
            'errors': self.errors,
            'meta': self.meta,
        }


class StageAdapter(ABC):
    """
    Base class for pipeline stages.

    The adapter receives the lead store and the Run being executed, reads its
    parameters from run.params, updates run counters as it goes and returns
    a StageResult with the ids of the leads it touched.
    """
    stage: str = ''

    # Shown on the dashboard next to the run launcher
    description: str = ''
    apis: List[str] = []

    @abstractmethod
    def run(self, store: Any, run: Any) -> StageResult:
        """
        Execute this stage.

        Args:
            store: the LeadStore to read from and write to
            run:   the Run object; call run.increment(...) / run.save() for
                   progress that the dashboard can poll
        """
        ...


# ── Stage registry ────────────────────────────────────────────────────────────
# The manager maps stage name → adapter class:
#   STAGE_REGISTRY = {'discovery': GitHubDiscovery, 'scoring': LeadScoring}


def get_adapter(stage_registry: Dict[str, Type[StageAdapter]], stage: str) -> StageAdapter:
    """Look up and instantiate the adapter for a stage."""
    adapter_cls = stage_registry.get(stage)
    if not adapter_cls:
        raise ValueError(f"No adapter registered for stage '{stage}'")
    return adapter_cls()


def get_pipeline_info(stage_registry: Dict[str, Type[StageAdapter]]) -> Dict[str, Any]:
    """JSON-friendly description of every registered stage."""
    return {
        stage: {
            'description': cls.description or '',
            'apis': cls.apis if isinstance(cls.apis, list) else [],
        }
        for stage, cls in stage_registry.items()
    }
