"""Content classification, harmful-content scoring and the decision engine."""
