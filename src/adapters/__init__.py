"""Adapters layer for Ophtha-Timeline.

This module contains input/output adapters that interface with external
systems: patient record sources (implementing the domain's
PatientSourcePort) and tabular export of derived timelines.
"""
