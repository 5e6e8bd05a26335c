"""Evaluation components.

Modular, protocol-based architecture:
- types.py: Data types + strategy protocol
- score_extractor.py: Free-text score parsing with neutral fallback
- dimension_evaluator.py: One oracle judgement per quality dimension
- composite_assessor.py: Aggregation + improvement suggestions
- improvement.py: Feedback-conditioned rewrite
- heuristics.py: Oracle-free operational self-evaluation
- strategies.py: Swappable self-evaluation strategies
- aggregation.py: Pure math (means, bands, statistics, outliers)
"""
