from __future__ import annotations


class ComplianceEngineError(Exception):
    """Base class for orchestration-level failures."""


class StoreError(ComplianceEngineError):
    """A read from or write to a backing store failed."""


class UnknownVendorError(ComplianceEngineError):
    def __init__(self, vendor_id: str):
        super().__init__(f"Unknown vendor_id '{vendor_id}'.")
        self.vendor_id = vendor_id
