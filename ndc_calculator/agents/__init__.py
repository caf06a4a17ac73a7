"""LLM agents: directions parsing and advisory package recommendation.

Agents produce structured JSON only. Quantities and the final selection
are decided by the deterministic engine.
"""
