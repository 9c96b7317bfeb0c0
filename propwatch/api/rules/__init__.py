"""HTTP resources for administering recurrence rules."""
