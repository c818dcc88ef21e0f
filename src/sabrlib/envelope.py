"""
Standard output envelope for sabrlib computations.

Every public computation returns its result wrapped with the methodology
used, the assumptions it ran under, any warnings raised along the way and
run metadata (library version, wall time, numeric precision).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ComputationMetadata:
    """Metadata attached to every computation."""
    version: str
    computation_time_us: int
    precision: str


@dataclass
class ComputationOutput:
    """
    Result envelope.

    Attributes:
        result: The computation-specific result object
        methodology: Short name of the method applied
        assumptions: Inputs and settings the result depends on
        warnings: Non-fatal issues (e.g. iteration cap reached)
        metadata: Version, timing and precision information
    """
    result: Any
    methodology: str
    assumptions: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    metadata: Optional[ComputationMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary; the result is expanded if it supports it."""
        result = self.result.to_dict() if hasattr(self.result, "to_dict") else self.result
        meta = None
        if self.metadata is not None:
            meta = {
                "version": self.metadata.version,
                "computation_time_us": self.metadata.computation_time_us,
                "precision": self.metadata.precision,
            }
        return {
            "result": result,
            "methodology": self.methodology,
            "assumptions": dict(self.assumptions),
            "warnings": list(self.warnings),
            "metadata": meta,
        }


def with_metadata(
    methodology: str,
    assumptions: Dict[str, Any],
    warnings: List[str],
    elapsed_us: int,
    result: Any,
    precision: int = 28,
) -> ComputationOutput:
    """
    Wrap a computation result with methodology and run metadata.

    Args:
        methodology: Name of the method
        assumptions: Mapping of inputs/settings
        warnings: Warnings collected during the run
        elapsed_us: Wall time in microseconds
        result: Result object
        precision: Decimal context precision used for the run

    Returns:
        ComputationOutput
    """
    from . import __version__

    return ComputationOutput(
        result=result,
        methodology=methodology,
        assumptions=dict(assumptions),
        warnings=list(warnings),
        metadata=ComputationMetadata(
            version=__version__,
            computation_time_us=int(elapsed_us),
            precision=f"decimal_{precision}_digits",
        ),
    )


__all__ = ["ComputationMetadata", "ComputationOutput", "with_metadata"]
