"""HTTP resources for on-demand sweeps and stored reports."""
