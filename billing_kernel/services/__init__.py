"""Kernel services - flush-only persistence helpers and the commit boundary."""

from billing_kernel.services.base import BaseService, transaction_boundary
from billing_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = ["BaseService", "SequenceCounter", "SequenceService", "transaction_boundary"]
