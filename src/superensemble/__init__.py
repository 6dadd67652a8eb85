"""superensemble package.

Builds a superensemble estimator of B/Bmsy from the outputs of several
data-limited stock assessment methods run on simulated fisheries.

Architecture:
- Simulated observations -> spectral features + trailing-window means
- Dask is used for the per-group windowed aggregation
- Pydantic models validate rows and run configuration
- The fitted second-stage model is an off-the-shelf regressor
"""

from superensemble.pipeline import EnsembleResult, make

__all__ = ["EnsembleResult", "make", "__version__"]
__version__ = "0.1.0"
