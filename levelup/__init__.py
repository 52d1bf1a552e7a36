"""
LevelUp GitHub Activity Verifier
Weekly GitHub tasks, evidence and rule-based verification for career coaching.

Architecture:
- PostgreSQL: Structured data (tasks, user tasks, evidence, signals, scores)
- MongoDB: GitHub snapshot documents
- Verification engine: pure rule table, no I/O
"""

__version__ = "1.0.0"
