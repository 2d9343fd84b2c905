"""Leaderboard services: the top-K cache maintainer and ranking queries."""
