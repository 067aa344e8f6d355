"""
Marginalia - Companion Reading
A persona reads along with the user, leaving margin thoughts, chatting
about passages and consolidating what it remembers.

Architecture:
    generation.py       - Generation tasks (annotation, scan, replies, reviews, memory)
    orchestrator.py     - Annotation lifecycle: guards, dedup, store updates
    memory_scheduler.py - Threshold-driven memory consolidation
"""
