"""
hiretrack/constants.py

Central repository for cross-cutting, operationally-tunable constants.

Rules for what belongs here:
  - Pure Python only — no Django model imports (prevents circular import risk).
  - Referenced by more than one module, or genuinely tunable at the ops level.

What intentionally stays elsewhere:
  - TextChoices on models       — Django convention, DB-validated.
  - The transition table        — applications/transitions.py.
  - Values read from .env       — hiretrack/settings.py.
"""

# ── Screening calls ────────────────────────────────────────────────────────────

# Fallback when SCREENING_MIN_TRANSCRIPT_LENGTH is absent from settings.
DEFAULT_MIN_TRANSCRIPT_LENGTH = 20

# Minutes a screening may sit in scheduled/in-progress before
# sync_stuck_screenings polls the vendor directly as a webhook fallback.
STUCK_SCREENING_THRESHOLD_MINUTES = 15

# ── Vendor ─────────────────────────────────────────────────────────────────────

# Seconds before a vendor poll request is abandoned.
VENDOR_REQUEST_TIMEOUT_SECS = 15

# Maximum age of a signed webhook before we reject it (prevents replay attacks).
WEBHOOK_TIMESTAMP_TOLERANCE_SECS = 300
