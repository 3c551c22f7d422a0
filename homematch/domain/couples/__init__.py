"""Household mutual-interest aggregation: mutual likes, activity, stats."""

from homematch.domain.couples.service import CouplesService, get_service, set_service

__all__ = ["CouplesService", "get_service", "set_service"]
