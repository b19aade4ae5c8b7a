"""Failure taxonomy shared by the conversation flow, the pipeline and the API."""

from __future__ import annotations


class FormFitError(Exception):
    """Base class for every domain failure raised inside the service."""


class PipelineError(FormFitError):
    """A failure that aborts an order pipeline run."""


class OrderNotFound(PipelineError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class MissingPhoto(PipelineError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} has no photo, cannot generate a model")
        self.order_id = order_id


class ModelGenerationFailed(PipelineError):
    def __init__(self, last_error: str | None, attempts: int):
        detail = last_error or "model generation service unavailable"
        super().__init__(f"ModelGenerationFailed after {attempts} attempt(s): {detail}")
        self.last_error = last_error
        self.attempts = attempts


class NoQuoteAvailable(PipelineError):
    def __init__(self, material: str):
        super().__init__(f"NoQuoteAvailable: vendor returned no usable quotes for {material}")
        self.material = material


class VendorApiError(FormFitError):
    """The vendor API answered with something the client cannot use."""


class VendorOrderPlacementFailed(FormFitError):
    """Auto-ordering failed; the saved quote can still be ordered by hand."""


class TransportFailure(FormFitError):
    """A message could not be delivered or an attachment could not be fetched."""


class InvalidStatusTransition(FormFitError):
    def __init__(self, status: str):
        super().__init__(f"Invalid status: {status}")
        self.status = status
