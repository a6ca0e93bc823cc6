"""Core application configuration & tunable business rules.

All rules that may evolve (referral percentages, commission hold period,
claim upload limits, stats refresh resilience) are centralized here so they
can be adjusted without diving into service logic. Deployments override the
environment-backed values; rule groups are plain dicts so tests can
monkeypatch individual keys.
"""
from __future__ import annotations

import os

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE: str | None = os.getenv("LOG_FILE", "logs/app.log") or None

_seed_env = os.getenv("INTEGRATIONS_RANDOM_SEED")
INTEGRATIONS_RANDOM_SEED: int | None = int(_seed_env) if _seed_env and _seed_env.strip() else None

# Probability of a simulated failure in the mock TikTok stats feed
MOCK_FAILURE_RATE: float = float(os.getenv("MOCK_FAILURE_RATE", "0.05"))

# ------------------------------ Blob storage ------------------------------ #
BLOB_STORE_DIR: str = os.getenv("BLOB_STORE_DIR", "uploads")
BLOB_PUBLIC_BASE_URL: str = os.getenv("BLOB_PUBLIC_BASE_URL", "http://localhost:8000/files")

# ------------------------------ Claim workflow ---------------------------- #
CLAIM_SETTINGS: dict[str, object] = {
	"allowed_pdf_content_types": ["application/pdf"],
	"max_pdf_bytes": 10 * 1024 * 1024,  # 10MB
	# Gift cards carry no document to review; platforms may settle them at once.
	"instant_gift_card_payment": False,
}

# ---------------------------- Referral programme -------------------------- #
REFERRAL_SETTINGS: dict[str, int] = {
	"default_percentage": 10,
	"code_length": 6,
	# Days a commission stays pending before the platform releases it.
	"pending_hold_days": 30,
}

# ------------------------------ Stats refresh ----------------------------- #
STATS_REFRESH_SETTINGS: dict[str, int] = {
	"history_retention": 500,  # snapshots kept per submission
}

# ----------------------------- Circuit Breaker ---------------------------- #
CIRCUIT_BREAKER: dict[str, int | float] = {
	"failure_threshold": 5,          # Consecutive failures before OPEN
	"open_cooldown_seconds": 300,    # Stay OPEN for 5 minutes
	"half_open_probe_count": 3,      # Probes allowed in HALF_OPEN
}

# --------------------------------- Backoff -------------------------------- #
BACKOFF_POLICY: dict[str, int | float] = {
	"base_seconds": 1,
	"factor": 2,          # Exponential factor
	"max_seconds": 30,
	"max_attempts": 3,
	"jitter_pct": 0.10,   # +/-10% jitter
}

if INTEGRATIONS_RANDOM_SEED is not None:
	import random
	random.seed(INTEGRATIONS_RANDOM_SEED)

__all__ = [
	"LOG_LEVEL",
	"LOG_FILE",
	"INTEGRATIONS_RANDOM_SEED",
	"MOCK_FAILURE_RATE",
	"BLOB_STORE_DIR",
	"BLOB_PUBLIC_BASE_URL",
	# Rule groups
	"CLAIM_SETTINGS",
	"REFERRAL_SETTINGS",
	"STATS_REFRESH_SETTINGS",
	"CIRCUIT_BREAKER",
	"BACKOFF_POLICY",
]
