"""
Matchday backend: round-robin scheduling, standings and the live match console.
"""
