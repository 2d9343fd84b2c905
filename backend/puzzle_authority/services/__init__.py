"""Domain services: submission pipeline and leaderboard maintenance.

Routes and socket handlers import from here, keeping transport concerns
separated from scoring, anti-cheat and persistence rules.
"""
