"""Per-group feature extraction.

Provides the AR spectral-density features of catch series and the
trailing-window mean ratios computed per stock, method and iteration.
"""
