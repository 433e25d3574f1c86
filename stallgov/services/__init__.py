"""Governance services. Each command runs in one transaction and writes one audit entry."""
