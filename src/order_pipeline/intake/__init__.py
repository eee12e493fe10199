"""Order intake: validate, build, enqueue."""

from order_pipeline.intake.service import OrderSubmissionService

__all__ = ["OrderSubmissionService"]
