"""Location backfill for events whose source omits venue details."""
