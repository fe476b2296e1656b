"""Company aggregate consistency engine.

Keeps a company's legal identity, property, authorization lists, settlement
citizenship and reputation consistent as its membership and property change.
"""

__version__ = "0.1.0"
