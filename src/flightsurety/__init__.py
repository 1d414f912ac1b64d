"""FlightSurety — custodial ledger for flight-delay insurance."""

__version__ = "0.1.0"
