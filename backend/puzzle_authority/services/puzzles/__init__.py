"""Puzzle submission services: scoring, anti-cheat, rate limiting,
profile aggregation and the submission pipeline that ties them together.
"""
