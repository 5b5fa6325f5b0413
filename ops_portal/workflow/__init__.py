"""Approval workflow shared by leave, swap and replace-day requests."""
