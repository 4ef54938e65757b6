"""Identifier utilities."""

from __future__ import annotations

import time
import uuid


def generate_job_id(owner_id: str) -> str:
  """Return a new job identifier scoped to its owner."""
  return f"generate_{owner_id}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def generate_item_id() -> str:
  """Return a new quiz item identifier."""
  return str(uuid.uuid4())
