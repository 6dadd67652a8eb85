"""Dataset assembly.

This package joins spectral features, windowed means and operating-model
truths into the wide table used to fit the superensemble, and checks the
row-count invariants along the way.
"""
