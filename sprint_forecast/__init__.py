"""Statistical sprint forecasting engine.

Two complementary forecasters share one set of statistical primitives:

- a bottom-up Monte Carlo model that resamples each contributor's history to
  predict the next sprint, and
- a top-down analytical model that projects aggregate team throughput over
  several future sprints.
"""

__version__ = "0.1.0"
