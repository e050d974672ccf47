"""Run configuration for statistics collection and report rendering."""

from typing import Optional
from pydantic import Field

from .base import DomainModel


class StoreStatsCFG(DomainModel):
    """Configuration for a statistics collection run.

    Examples:
        # One worker per store module, wait for all of them
        StoreStatsCFG()

        # Cap concurrency and give up on stores still running after 30s
        StoreStatsCFG(max_workers=8, timeout_seconds=30.0)
    """

    max_workers: Optional[int] = Field(
        default=None,
        ge=1,
        description="Upper bound on concurrent store reads. None = one per store module"
    )

    timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description=(
            "Deadline for the whole collection. Stores still being read when it "
            "passes are cancelled and left out of the results. None = no deadline"
        )
    )


class StatsReportCFG(DomainModel):
    """Configuration for the Excel statistics report."""

    title: str = Field(default="Store Statistics", description="Title row of the stats sheet")

    stats_sheet_name: str = Field(default="Store Stats", max_length=31)

    graph_sheet_name: str = Field(default="Module Graph", max_length=31)

    include_graph_sheet: bool = Field(
        default=True,
        description="Add a sheet listing the module dependency edges"
    )
