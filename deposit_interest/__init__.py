"""
Rental Deposit Interest

Compounds interest on a rental deposit under a piecewise-constant, time-varying
deposit rate and applies capital gains tax. All financial math uses Decimal.
"""

__version__ = "1.0.0"
