"""Second-stage model trainers (random forest, boosting, linear)."""
