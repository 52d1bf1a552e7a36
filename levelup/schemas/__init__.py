"""
Schemas module - domain records and API contract.

- Records: Signal, Evidence, Snapshot, VerificationContext, VerificationResult
- Schemas: what the API accepts and returns
"""
