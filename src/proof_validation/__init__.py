"""
Proof Validation - anti-fraud pipeline for proof-of-visit submissions.

Decides whether a user's proof that they visited a partner business is
genuine, given the GPS fix, the user's submission history and the proof
artifact (photo, receipt, GPS check-in or location question).

Modules:
    geo: Haversine distance, travel speed and coordinate validation
    fraud: Fraud signal evaluators, aggregator and concurrent engine
    oracle: Adapter for the hosted image classification service
    policy: Final approve/reject/manual_review decision
    tuning: Periodic auto-tuning of decision thresholds
    prevalidation: Structural and business-rule gate
    metrics: Decision metrics recorder
    pipeline: End-to-end orchestration
"""

__version__ = "0.1.0"
