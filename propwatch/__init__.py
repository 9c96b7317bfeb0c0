"""Recurring property report scheduler.

``propwatch`` persists per-property recurrence rules, sweeps the rules that
are due, aggregates the inquiries recorded since the previous run, asks a
narrative service to turn them into a report, stores the report and only
then advances the rule to its next occurrence.
"""
