"""Deterministic quantity, matching, optimization and arbitration engine.

Pure functions over immutable inputs. No network or LLM calls.
"""
