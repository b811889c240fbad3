"""Portfolio risk analytics: VaR, drawdown, factor, concentration and stress metrics."""

__version__ = "0.1.0"
