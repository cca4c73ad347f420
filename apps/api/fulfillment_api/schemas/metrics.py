from pydantic import BaseModel, ConfigDict, Field

from fulfillment_api.observability import MetricsSnapshot


class TimingSummary(BaseModel):
    count: int = Field(description="Number of observations since process start")
    avg_s: float = Field(description="Mean duration in seconds")
    max_s: float = Field(description="Slowest observation in seconds")


class MetricsResponse(BaseModel):
    """In-process counters and timings for webhook ingestion and tracking appends.

    Values reset when the process restarts; there is no cross-worker aggregation.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "counters": {
                    "webhook_received_total": 12,
                    "webhook_signature_rejected_total": 1,
                    "tracking_transition_applied_total": 9,
                    "tracking_transition_rejected_total": 2,
                },
                "timings": {
                    "webhook_processing_seconds": {"count": 11, "avg_s": 0.004, "max_s": 0.021},
                },
            }
        }
    )

    counters: dict[str, int] = Field(default_factory=dict)
    timings: dict[str, TimingSummary] = Field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: MetricsSnapshot) -> "MetricsResponse":
        return cls(
            counters=snapshot.counters,
            timings={
                name: TimingSummary(
                    count=int(stats["count"]),
                    avg_s=stats["avg_s"],
                    max_s=stats["max_s"],
                )
                for name, stats in snapshot.timings.items()
            },
        )
